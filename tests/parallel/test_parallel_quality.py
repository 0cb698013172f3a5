"""
Mesh quality reductions on a real MPI communicator.

Run with pytest-mpi:
    mpirun -n 2 python -m pytest --with-mpi tests/parallel
"""

import warnings

import numpy as np
import pytest
from mpi4py import MPI

from fecore.common.mpi import comm_self, global_sum
from fecore.mesh import Mesh, MeshQuality

pytestmark = pytest.mark.mpi(min_size=2)


@pytest.fixture(scope="module")
def serial_mesh():
    return Mesh.create_unit_cube(comm_self(), 2, 2, 2)


def distributed_mesh(ghost_mode):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        return Mesh.create_unit_cube(MPI.COMM_WORLD, 2, 2, 2, ghost_mode=ghost_mode)


@pytest.mark.parametrize("ghost_mode", ["none", "shared_facet", "shared_vertex"])
def test_partition_invariance(serial_mesh, ghost_mode):
    mesh = distributed_mesh(ghost_mode)

    np.testing.assert_allclose(
        MeshQuality.radius_ratio_min_max(mesh),
        MeshQuality.radius_ratio_min_max(serial_mesh),
    )
    np.testing.assert_allclose(
        MeshQuality.dihedral_angles_min_max(mesh),
        MeshQuality.dihedral_angles_min_max(serial_mesh),
    )
    bins, values = MeshQuality.radius_ratio_histogram_data(mesh, num_bins=10)
    serial_bins, serial_values = MeshQuality.radius_ratio_histogram_data(
        serial_mesh, num_bins=10
    )
    np.testing.assert_allclose(bins, serial_bins)
    np.testing.assert_array_equal(values, serial_values)
    assert values.sum() == serial_mesh.num_cells()


def test_owned_cells_cover_the_mesh_once(serial_mesh):
    mesh = distributed_mesh("shared_facet")
    assert global_sum(mesh.comm, mesh.num_owned_cells()) == serial_mesh.num_cells()
    assert mesh.num_global_cells() == serial_mesh.num_cells()


def test_ghost_cells_counted_on_request(serial_mesh):
    mesh = distributed_mesh("shared_facet")
    _, values = MeshQuality.radius_ratio_histogram_data(
        mesh, num_bins=10, include_ghosts=True
    )
    assert values.sum() > serial_mesh.num_cells()
