import unittest
import warnings

import numpy as np

from common_comm import run_parallel
from common_meshes import (
    create_degenerate_triangle_mesh,
    create_regular_tetrahedron_mesh,
    create_right_tetrahedron_mesh,
    create_two_tetrahedron_mesh,
    create_two_triangle_mesh,
)
from fecore.common.errors import DimensionError, InvalidArgumentError
from fecore.common.mpi import comm_self
from fecore.mesh import Cell, Mesh, MeshQuality, QualitySummary

RIGHT_TRIANGLE_RATIO = 2.0 * (2.0 - np.sqrt(2.0)) / np.sqrt(2.0)


class TestRadiusRatio(unittest.TestCase):
    def test_radius_ratios(self):
        mesh = create_two_triangle_mesh()
        cf = MeshQuality.radius_ratios(mesh)
        np.testing.assert_allclose(cf.values, RIGHT_TRIANGLE_RATIO)

    def test_min_max(self):
        qmin, qmax = MeshQuality.radius_ratio_min_max(create_two_triangle_mesh())
        self.assertAlmostEqual(qmin, RIGHT_TRIANGLE_RATIO)
        self.assertAlmostEqual(qmax, RIGHT_TRIANGLE_RATIO)

    def test_regular_tetrahedron(self):
        qmin, qmax = MeshQuality.radius_ratio_min_max(create_regular_tetrahedron_mesh())
        self.assertAlmostEqual(qmin, 1.0)
        self.assertAlmostEqual(qmax, 1.0)

    def test_histogram(self):
        """Two-triangle unit square: both cells share one ratio bin."""
        bins, values = MeshQuality.radius_ratio_histogram_data(
            create_two_triangle_mesh(), num_bins=4
        )
        np.testing.assert_allclose(bins, [0.125, 0.375, 0.625, 0.875])
        np.testing.assert_array_equal(values, [0, 0, 0, 2])

    def test_histogram_two_tetrahedra(self):
        """
        Unit cube split into two tetrahedra on one process.

        The corner tetrahedron has ratio 3(sqrt(3) - 1)/2 ~ 0.732 and the
        regular one exactly 1.0, which must land in the last bin.
        """
        mesh = create_two_tetrahedron_mesh()
        bins, values = MeshQuality.radius_ratio_histogram_data(mesh, num_bins=4)
        np.testing.assert_allclose(bins, [0.125, 0.375, 0.625, 0.875])
        np.testing.assert_array_equal(values, [0, 0, 1, 1])
        self.assertEqual(values.sum(), 2)

    def test_histogram_counts_every_cell(self):
        mesh = Mesh.create_unit_cube(comm_self(), 2, 2, 1)
        _, values = MeshQuality.radius_ratio_histogram_data(mesh, num_bins=7)
        self.assertEqual(values.sum(), mesh.num_cells())

    def test_histogram_bin_count(self):
        with self.assertRaises(InvalidArgumentError):
            MeshQuality.radius_ratio_histogram_data(create_two_triangle_mesh(), num_bins=0)

    def test_degenerate_cell_lands_in_first_bin(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            _, values = MeshQuality.radius_ratio_histogram_data(
                create_degenerate_triangle_mesh(), num_bins=5
            )
        np.testing.assert_array_equal(values, [1, 0, 0, 0, 0])


class TestDihedralAngles(unittest.TestCase):
    def test_right_tetrahedron(self):
        mesh = create_right_tetrahedron_mesh()
        angles = MeshQuality.dihedral_angles(Cell(mesh, 0))
        self.assertEqual(angles.shape, (6,))
        np.testing.assert_allclose(
            np.sort(angles),
            [np.arccos(1.0 / np.sqrt(3.0))] * 3 + [np.pi / 2.0] * 3,
        )

    def test_output_array(self):
        mesh = create_right_tetrahedron_mesh()
        out = np.zeros(6)
        result = MeshQuality.dihedral_angles(Cell(mesh, 0), out)
        self.assertIs(result, out)
        self.assertAlmostEqual(out.max(), np.pi / 2.0)

    def test_two_dimensional_cell(self):
        mesh = create_two_triangle_mesh()
        out = np.full(6, 7.0)
        with self.assertRaises(DimensionError):
            MeshQuality.dihedral_angles(Cell(mesh, 0), out)
        np.testing.assert_array_equal(out, 7.0)

    def test_min_max(self):
        dmin, dmax = MeshQuality.dihedral_angles_min_max(create_right_tetrahedron_mesh())
        self.assertAlmostEqual(dmin, np.arccos(1.0 / np.sqrt(3.0)))
        self.assertAlmostEqual(dmax, np.pi / 2.0)

    def test_histogram(self):
        bins, values = MeshQuality.dihedral_angles_histogram_data(
            create_right_tetrahedron_mesh(), num_bins=4
        )
        np.testing.assert_allclose(bins, np.pi * np.array([0.125, 0.375, 0.625, 0.875]))
        # acos(1/sqrt(3)) ~ 0.955 falls in the second bin, pi/2 in the third
        np.testing.assert_array_equal(values, [0, 3, 3, 0])


class TestQualitySummary(unittest.TestCase):
    def test_triangle_mesh(self):
        summary = QualitySummary.from_mesh(create_two_triangle_mesh(), num_bins=4)
        self.assertEqual(summary.num_cells, 2)
        self.assertIsNone(summary.dihedral_angle_min_max)
        self.assertIsNone(summary.dihedral_angle_histogram)

    def test_tetrahedral_mesh(self):
        summary = QualitySummary.from_mesh(create_right_tetrahedron_mesh())
        self.assertEqual(summary.num_cells, 1)
        self.assertEqual(summary.dihedral_angle_histogram[1].sum(), 6)


class TestDistributedQuality(unittest.TestCase):
    """Global reductions do not depend on the number of processes."""

    def setUp(self):
        self.serial = Mesh.create_unit_cube(comm_self(), 2, 2, 2)
        self.serial_min_max = MeshQuality.radius_ratio_min_max(self.serial)
        self.serial_histogram = MeshQuality.dihedral_angles_histogram_data(
            self.serial, num_bins=8
        )

    def _distributed(self, size, ghost_mode, include_ghosts=False):
        def body(comm):
            mesh = Mesh.create_unit_cube(comm, 2, 2, 2, ghost_mode=ghost_mode)
            return (
                MeshQuality.radius_ratio_min_max(mesh, include_ghosts),
                MeshQuality.dihedral_angles_histogram_data(
                    mesh, num_bins=8, include_ghosts=include_ghosts
                ),
                QualitySummary.from_mesh(mesh, include_ghosts=include_ghosts).num_cells,
            )

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            return run_parallel(size, body)

    def test_partition_invariance(self):
        for size in (2, 3):
            for min_max, (bins, values), num_cells in self._distributed(size, "shared_facet"):
                np.testing.assert_allclose(min_max, self.serial_min_max)
                np.testing.assert_allclose(bins, self.serial_histogram[0])
                np.testing.assert_array_equal(values, self.serial_histogram[1])
                self.assertEqual(num_cells, 48)

    def test_ghosts_counted_on_request(self):
        for _, (_, values), num_cells in self._distributed(2, "shared_facet", True):
            self.assertGreater(num_cells, 48)
            self.assertEqual(values.sum(), 6 * num_cells)


if __name__ == "__main__":
    unittest.main()
