#!/usr/bin/env python

"""Unittests for the linearization features of ``FlowDiscretization``

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import unittest

import numpy as np

from py_euler_fv import BlockDiagonalLowerUpper
from py_euler_fv import FlowDiscretization
from py_euler_fv import FlowNumericsConfig
from py_euler_fv import FlowPhysicsConfig
from py_euler_fv import SparseBlockMatrix
from py_euler_fv import create_rectangle_mesh
from py_euler_fv.config import INVISCID_FLUXES


class LinearizationTestCase(unittest.TestCase):
    """Common setup of the linearization tests"""

    def setUp(self) -> None:
        """Preparation done for each test

        Creates a first order ``FlowDiscretization`` on a periodic mesh and sets the ``state``
        randomly, but similar to the free-stream.
        """
        self.rng = np.random.default_rng(seed=1)
        self.mesh = create_rectangle_mesh(3, 3, periodic=True)
        self.physics = FlowPhysicsConfig(mach_number=0.5, angle_of_attack=20.)
        self.solver = FlowDiscretization(self.mesh, self.physics)
        state = self.solver.initialize_unknowns()
        self.state = state * ((self.rng.random(state.shape) - 0.5) * 0.1 + 1.)
        self.res_base, self.timestep = self.solver.compute_residual(
            self.state, compute_timestep=True)

    def get_finite_difference_jacobian(self, solver: FlowDiscretization) -> np.ndarray:
        """Gets the Jacobian of the residual by finite-difference

        Args:
            solver: Discretization.

        Returns:
            Jacobian as dense array, ordered cell by cell.
        """
        residual_0, _ = solver.compute_residual(self.state)
        size = self.state.size
        jacobi_fd = np.zeros((size, size))
        for cell in range(self.mesh.num_cells):
            for i in range(4):
                state = self.state.copy()
                state[i, cell] += 1e-7
                residual, _ = solver.compute_residual(state)
                jacobi_fd[:, 4 * cell + i] = ((residual - residual_0) / 1e-7).ravel(order="F")
        return jacobi_fd


class TestJacobi(LinearizationTestCase):
    """Tests for the Jacobians"""

    def test_jacobian(self) -> None:
        """Compare the Jacobians of all fluxes with finite-difference"""
        for flux in INVISCID_FLUXES:
            with self.subTest(flux=flux):
                solver = FlowDiscretization(
                    self.mesh, self.physics, FlowNumericsConfig(inviscid_flux=flux))
                np.testing.assert_allclose(
                    solver.compute_jacobian(self.state).to_bsr().toarray(),
                    self.get_finite_difference_jacobian(solver),
                    atol=1e-6, rtol=1e-5,
                )

    def test_farfield_jacobian(self) -> None:
        """Compare the Jacobian with far-field boundaries with finite-difference"""
        self.mesh = create_rectangle_mesh(3, 2, markers=(1, 1, 1, 1), triangulate=True)
        solver = FlowDiscretization(
            self.mesh, FlowPhysicsConfig(mach_number=0.5, angle_of_attack=10., farfield_marker=1))
        state = solver.initialize_unknowns()
        self.state = state * ((self.rng.random(state.shape) - 0.5) * 0.1 + 1.)
        np.testing.assert_allclose(
            solver.compute_jacobian(self.state).to_bsr().toarray(),
            self.get_finite_difference_jacobian(solver),
            atol=1e-6, rtol=1e-5,
        )

    def test_approximate_jacobian(self) -> None:
        """The Jacobian is assembled with the Jacobian flux"""
        solver = FlowDiscretization(
            self.mesh, self.physics, FlowNumericsConfig(inviscid_flux="ROE", jacobian_flux="LLF"))
        approximate = solver.compute_jacobian(self.state).to_bsr().toarray()
        self.assertFalse(np.allclose(
            approximate, self.solver.compute_jacobian(self.state).to_bsr().toarray()))
        llf_solver = FlowDiscretization(
            self.mesh, self.physics, FlowNumericsConfig(inviscid_flux="LLF"))
        np.testing.assert_allclose(
            approximate, llf_solver.compute_jacobian(self.state).to_bsr().toarray(), atol=1e-14)

    def test_backends(self) -> None:
        """Diagonal, lower and upper blocks agree with the sparse backend"""
        blocks = self.solver.compute_jacobian(self.state)
        self.assertIsInstance(blocks, BlockDiagonalLowerUpper)
        sparse = self.solver.compute_jacobian(self.state, SparseBlockMatrix(9, 4))
        np.testing.assert_allclose(
            sparse.to_bsr().toarray(), blocks.to_bsr().toarray(), atol=1e-14)
        # matrices are overwritten
        sparse = self.solver.compute_jacobian(self.state, sparse)
        blocks = self.solver.compute_jacobian(self.state, blocks)
        np.testing.assert_allclose(
            sparse.to_bsr().toarray(), blocks.to_bsr().toarray(), atol=1e-14)
        np.testing.assert_allclose(
            blocks.to_bsr().toarray(),
            self.solver.compute_jacobian(self.state).to_bsr().toarray(),
            atol=1e-14,
        )

    def test_block_placement(self) -> None:
        """Lower and upper blocks sit at the neighbor and owner rows"""
        blocks = self.solver.compute_jacobian(self.state)
        dense = blocks.to_bsr().toarray().reshape(9, 4, 9, 4)
        for face, (owner, neighbor) in enumerate(self.mesh.face_cells):
            np.testing.assert_allclose(dense[neighbor, :, owner, :], blocks.lower[..., face])
            np.testing.assert_allclose(dense[owner, :, neighbor, :], blocks.upper[..., face])
        np.testing.assert_allclose(
            np.moveaxis(dense[np.arange(9), :, np.arange(9), :], 0, -1), blocks.diagonal)

    def test_matvec(self) -> None:
        """Products and shifted matrices of the backends"""
        blocks = self.solver.compute_jacobian(self.state)
        direction = self.rng.random(self.state.shape)
        dense = blocks.to_bsr().toarray()
        expected = (dense @ direction.ravel(order="F")).reshape(direction.shape, order="F")
        np.testing.assert_allclose(blocks.matvec(direction), expected, atol=1e-12)
        sparse = self.solver.compute_jacobian(self.state, SparseBlockMatrix(9, 4))
        np.testing.assert_allclose(sparse.matvec(direction), expected, atol=1e-12)
        shift = 2. + 0.5j
        np.testing.assert_allclose(
            blocks.to_csr(shift).toarray(), dense - shift * np.eye(36), atol=1e-14)

    def test_connectivity(self) -> None:
        """Blocks allocated for a different mesh are rejected"""
        blocks = BlockDiagonalLowerUpper(
            9, np.roll(self.mesh.face_cells, 1, axis=0), 4)
        with self.assertRaisesRegex(RuntimeError, "connectivity"):
            self.solver.compute_jacobian(self.state, blocks)


class TestMatrixFree(LinearizationTestCase):
    """Tests for the matrix-free Jacobian-vector products"""

    def test_jacobian_vector_product(self) -> None:
        """Compare the matrix-free product with the assembled Jacobian"""
        direction = self.rng.random(self.state.shape) - 0.5
        blocks = self.solver.compute_jacobian(self.state)
        np.testing.assert_allclose(
            self.solver.compute_jacobian_vector_product(self.res_base, self.state, direction),
            blocks.matvec(direction),
            atol=1e-5, rtol=1e-4,
        )
        np.testing.assert_allclose(
            self.solver.compute_jacobian_vector_product(
                self.res_base, self.state, direction, add_time_term=True, timestep=self.timestep),
            blocks.matvec(direction) + self.mesh.cell_areas / self.timestep * direction,
            atol=1e-5, rtol=1e-4,
        )

    def test_affine(self) -> None:
        """Affine combination of the matrix-free product"""
        direction = self.rng.random(self.state.shape) - 0.5
        offset = self.rng.random(self.state.shape)
        product = self.solver.compute_jacobian_vector_product(
            self.res_base, self.state, direction)
        np.testing.assert_allclose(
            self.solver.compute_jacobian_vector_product_affine(
                -2., self.res_base, self.state, direction, 0.5, offset),
            -2. * product + 0.5 * offset,
            atol=1e-12,
        )

    def test_zero_direction(self) -> None:
        """Zero directions yield a zero product"""
        with self.assertLogs("py_euler_fv.core", level="DEBUG"):
            product = self.solver.compute_jacobian_vector_product(
                self.res_base, self.state, np.zeros_like(self.state))
        np.testing.assert_array_equal(product, 0.)

    def test_missing_timestep(self) -> None:
        """The time term requires time steps"""
        with self.assertRaises(ValueError):
            self.solver.compute_jacobian_vector_product(
                self.res_base, self.state, self.state, add_time_term=True)

    def test_linear_operator(self) -> None:
        """The linear operator applies the matrix-free product to flattened vectors"""
        operator = self.solver.as_linear_operator(self.state)
        self.assertEqual(operator.shape, (36, 36))
        vector = self.rng.random(36) - 0.5
        np.testing.assert_allclose(
            operator @ vector,
            self.solver.compute_jacobian(self.state).to_bsr() @ vector,
            atol=1e-5, rtol=1e-4,
        )


if __name__ == "__main__":
    unittest.main()
