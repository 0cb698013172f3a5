"""
Distributed vector operations on a real MPI communicator.

Run with pytest-mpi:
    mpirun -n 2 python -m pytest --with-mpi tests/parallel
    mpirun -n 3 python -m pytest --with-mpi tests/parallel
"""

import numpy as np
import pytest
from mpi4py import MPI

from fecore.la import NumpyVector

pytestmark = pytest.mark.mpi(min_size=2)


def make_vector(comm, rows_per_rank=3, **kwargs):
    """A vector holding ``index + 1`` at every global index."""
    v = NumpyVector(comm, rows_per_rank * comm.size, **kwargs)
    r0, r1 = v.local_range()
    v.set_local(np.arange(r0, r1) + 1.0)
    return v


def test_insert_from_one_process_round_trip():
    comm = MPI.COMM_WORLD
    n = 3 * comm.size
    v = NumpyVector(comm, n)
    if comm.rank == 0:
        v.set(np.arange(n) * 2.0, np.arange(n))
    v.apply("insert")

    r0, r1 = v.local_range()
    np.testing.assert_array_equal(v.get_local(), np.arange(r0, r1) * 2.0)
    np.testing.assert_array_equal(v.get(np.arange(n)[::-1]), np.arange(n)[::-1] * 2.0)


def test_add_from_every_process():
    comm = MPI.COMM_WORLD
    v = NumpyVector(comm, 3 * comm.size)
    v.add(np.ones(2), [0, v.size() - 1])
    v.apply("add")

    assert v.sum() == pytest.approx(2.0 * comm.size)
    assert v.get([0])[0] == pytest.approx(comm.size)


def test_sum_of_overlapping_rows():
    comm = MPI.COMM_WORLD
    v = make_vector(comm)
    n = v.size()
    # Every process names row 0 and the last row; each counts once.
    rows = [0, n - 1, comm.rank]
    named = {0, n - 1} | set(range(comm.size))
    expected = sum(row + 1.0 for row in named)

    assert v.sum(rows) == pytest.approx(expected)
    assert v.sum() == pytest.approx(n * (n + 1) / 2.0)


def test_update_ghost_values():
    comm = MPI.COMM_WORLD
    ghost = 3 * ((comm.rank + 1) % comm.size)
    v = make_vector(comm, ghost_indices=[ghost])
    assert v.get_local([ghost])[0] == 0.0

    v.update_ghost_values()
    assert v.get_local([ghost])[0] == ghost + 1.0

    v *= 2.0
    v.update_ghost_values()
    assert v.get_local([ghost])[0] == 2.0 * (ghost + 1.0)


def test_reductions_match_serial_values():
    comm = MPI.COMM_WORLD
    v = make_vector(comm)
    values = np.arange(v.size()) + 1.0

    assert v.norm("l1") == pytest.approx(values.sum())
    assert v.norm("l2") == pytest.approx(np.linalg.norm(values))
    assert v.min() == 1.0
    assert v.max() == values[-1]
    assert v.inner(v) == pytest.approx(values @ values)
