import io
import unittest
from contextlib import redirect_stdout

import numpy as np

from fecore.common.mpi import comm_self
from fecore.mesh import Mesh
from fecore.mesh.partition import metis, partition_mesh, print_partition_summary


class TestPartitionMesh(unittest.TestCase):
    def setUp(self):
        self.mesh = Mesh.create_unit_square(comm_self(), 15, 15)

    @unittest.skipIf(metis is None, "METIS python binding not available")
    def test_metis_partitioning(self):
        """Test METIS partitioning."""
        n_parts = 3
        parts = partition_mesh(self.mesh, n_parts, method="metis")
        self.assertEqual(parts.shape[0], self.mesh.num_cells())
        self.assertEqual(len(np.unique(parts)), n_parts)

    def test_hierarchical_partitioning(self):
        """Test hierarchical partitioning."""
        n_parts = 4
        parts = partition_mesh(self.mesh, n_parts, method="hierarchical")
        self.assertEqual(parts.shape[0], self.mesh.num_cells())
        self.assertEqual(len(np.unique(parts)), n_parts)
        counts = np.bincount(parts)
        self.assertLessEqual(counts.max() - counts.min(), 30)

    def test_hierarchical_is_deterministic(self):
        first = partition_mesh(self.mesh, 3)
        second = partition_mesh(self.mesh, 3)
        np.testing.assert_array_equal(first, second)
        np.testing.assert_array_equal(np.bincount(first), [150, 150, 150])

    def test_cell_weights(self):
        mesh = Mesh.create_unit_interval(comm_self(), 4)
        parts = partition_mesh(mesh, 2, cell_weights=np.array([3.0, 1.0, 1.0, 1.0]))
        np.testing.assert_array_equal(parts, [0, 1, 1, 1])

    def test_more_parts_than_cells(self):
        mesh = Mesh.create_unit_interval(comm_self(), 2)
        with self.assertWarns(UserWarning):
            parts = partition_mesh(mesh, 3)
        self.assertEqual(len(np.unique(parts)), 2)

    def test_single_part(self):
        parts = partition_mesh(self.mesh, 1)
        self.assertTrue(np.all(parts == 0))

    def test_unknown_method(self):
        with self.assertRaises(NotImplementedError):
            partition_mesh(self.mesh, 2, method="spectral")

    def test_print_partition_summary(self):
        parts = partition_mesh(self.mesh, 2)
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            print_partition_summary(parts)
        output = buffer.getvalue()
        self.assertIn("Number of partitions: 2", output)
        counts = np.bincount(parts)
        self.assertIn(f"Partition 1: {counts[1]} cells", output)


if __name__ == "__main__":
    unittest.main()
