import io
import unittest
from contextlib import redirect_stdout

from common_meshes import create_right_tetrahedron_mesh, create_two_triangle_mesh
from fecore.common.mpi import comm_self
from fecore.mesh import QualitySummary, format_quality_summary, print_quality_summary


class TestReporting(unittest.TestCase):
    def test_triangle_report(self):
        summary = QualitySummary.from_mesh(create_two_triangle_mesh(), num_bins=4)
        report = format_quality_summary(summary)
        self.assertIn("Number of cells: 2", report)
        self.assertIn("Radius Ratio", report)
        self.assertIn("0.8284", report)
        self.assertNotIn("Dihedral", report)

    def test_tetrahedron_report(self):
        summary = QualitySummary.from_mesh(create_right_tetrahedron_mesh(), num_bins=4)
        report = format_quality_summary(summary)
        self.assertIn("Dihedral Angle (deg)", report)
        self.assertIn("90.0000", report)
        self.assertIn("54.7356", report)

    def test_missing_summary(self):
        self.assertEqual(format_quality_summary(None), "Quality metrics not computed.")

    def test_print_on_first_process(self):
        summary = QualitySummary.from_mesh(create_two_triangle_mesh())
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            print_quality_summary(summary, comm=comm_self())
        self.assertIn("Mesh Quality Metrics", buffer.getvalue())


if __name__ == "__main__":
    unittest.main()
