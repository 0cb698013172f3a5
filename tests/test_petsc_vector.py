import unittest

import numpy as np

from fecore.common.errors import InvalidArgumentError, SizeMismatchError
from fecore.common.mpi import comm_self
from fecore.la import NumpyVector, PETScVector
from fecore.la.petsc_vector import PETSc


@unittest.skipIf(PETSc is None, "petsc4py not available")
class TestPETScVector(unittest.TestCase):
    def setUp(self):
        self.v = PETScVector(comm_self(), 4)

    def test_staged_writes(self):
        self.v.set([1.0, 2.0], [0, 3])
        self.v.apply("insert")
        self.v.add([1.0, 1.0], [3, 3])
        self.v.apply("add")
        np.testing.assert_allclose(self.v.get_local(), [1.0, 0.0, 0.0, 4.0])
        with self.assertRaises(InvalidArgumentError):
            self.v.apply("replace")

    def test_kernels(self):
        self.v.set_local([3.0, -4.0, 0.0, 0.0])
        self.assertAlmostEqual(self.v.norm("l2"), 5.0)
        self.assertAlmostEqual(self.v.norm("l1"), 7.0)
        self.assertAlmostEqual(self.v.min(), -4.0)
        y = self.v.copy()
        y *= 2.0
        self.assertAlmostEqual(self.v.inner(y), 50.0)
        self.v.axpy(-0.5, y)
        self.assertAlmostEqual(self.v.norm("linf"), 0.0)

    def test_sum_and_get(self):
        self.v.set_local([1.0, 2.0, 3.0, 4.0])
        self.assertAlmostEqual(self.v.sum(), 10.0)
        self.assertAlmostEqual(self.v.sum([3, 3, 0]), 5.0)
        np.testing.assert_allclose(self.v.get([2, 1]), [3.0, 2.0])

    def test_errors(self):
        with self.assertRaises(SizeMismatchError):
            self.v.set_local([1.0])
        with self.assertRaises(TypeError):
            self.v.inner(NumpyVector(comm_self(), 4))


@unittest.skipIf(PETSc is not None, "petsc4py is available")
class TestMissingPETSc(unittest.TestCase):
    def test_construction_fails(self):
        with self.assertRaises(ImportError):
            PETScVector(comm_self(), 4)


if __name__ == "__main__":
    unittest.main()
