#!/usr/bin/env python

"""Unittests for the residual of the flow discretization

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import unittest
from itertools import product

import numpy as np

from py_euler_fv import ConfigurationError
from py_euler_fv import FlowDiscretization
from py_euler_fv import FlowNumericsConfig
from py_euler_fv import FlowPhysicsConfig
from py_euler_fv import create_rectangle_mesh
from py_euler_fv.config import INVISCID_FLUXES
from py_euler_fv.config import LIMITERS
from py_euler_fv.config import RECONSTRUCTIONS


class TestFreeStream(unittest.TestCase):
    """Tests for the preservation of the free-stream"""

    def test_farfield(self) -> None:
        """The free-stream has zero residual on meshes with far-field boundaries"""
        mesh = create_rectangle_mesh(
            5, 4, markers=(1, 1, 1, 1), triangulate=True, perturbation=0.4, seed=1)
        physics = FlowPhysicsConfig(mach_number=0.7, angle_of_attack=30., farfield_marker=1)
        for flux, reconstruction in product(INVISCID_FLUXES, RECONSTRUCTIONS):
            with self.subTest(flux=flux, reconstruction=reconstruction):
                solver = FlowDiscretization(mesh, physics, FlowNumericsConfig(
                    inviscid_flux=flux, reconstruction=reconstruction))
                residual, _ = solver.compute_residual(solver.initialize_unknowns())
                np.testing.assert_allclose(residual, 0., atol=1e-12)

    def test_slip_walls(self) -> None:
        """The free-stream has zero residual in a channel with slip walls"""
        mesh = create_rectangle_mesh(6, 3, markers=(1, 2, 1, 2), perturbation=0.3, seed=2)
        physics = FlowPhysicsConfig(mach_number=0.5, slip_wall_marker=1, farfield_marker=2)
        for limiter in LIMITERS:
            with self.subTest(limiter=limiter):
                solver = FlowDiscretization(mesh, physics, FlowNumericsConfig(
                    inviscid_flux="HLLC", reconstruction="LEASTSQUARES", limiter=limiter))
                residual, _ = solver.compute_residual(solver.initialize_unknowns())
                np.testing.assert_allclose(residual, 0., atol=1e-12)

    def test_hybrid_mesh(self) -> None:
        """The free-stream is preserved on meshes of mixed triangles and quadrilaterals"""
        mesh = create_rectangle_mesh(
            6, 4, markers=(1, 1, 1, 1), hybrid=True, perturbation=0.3, seed=4)
        physics = FlowPhysicsConfig(mach_number=0.6, angle_of_attack=20., farfield_marker=1)
        for reconstruction in RECONSTRUCTIONS:
            with self.subTest(reconstruction=reconstruction):
                solver = FlowDiscretization(mesh, physics, FlowNumericsConfig(
                    inviscid_flux="ROE", reconstruction=reconstruction))
                residual, _ = solver.compute_residual(solver.initialize_unknowns())
                np.testing.assert_allclose(residual, 0., atol=1e-12)

    def test_primitive_reconstruction(self) -> None:
        """The free-stream is preserved with reconstruction of primitive variables"""
        mesh = create_rectangle_mesh(4, 4, markers=(1, 1, 1, 1), triangulate=True)
        solver = FlowDiscretization(
            mesh,
            FlowPhysicsConfig(angle_of_attack=-15., farfield_marker=1),
            FlowNumericsConfig(
                reconstruction="GREENGAUSS", limiter="VENKATAKRISHNAN",
                reconstruct_primitive=True),
        )
        residual, _ = solver.compute_residual(solver.initialize_unknowns())
        np.testing.assert_allclose(residual, 0., atol=1e-12)

    def test_viscous(self) -> None:
        """The free-stream has zero viscous residual"""
        mesh = create_rectangle_mesh(4, 3, markers=(1, 1, 1, 1), perturbation=0.3, seed=3)
        solver = FlowDiscretization(
            mesh,
            FlowPhysicsConfig(viscous=True, reynolds_number=50., farfield_marker=1),
            FlowNumericsConfig(reconstruction="LEASTSQUARES"),
        )
        residual, _ = solver.compute_residual(solver.initialize_unknowns())
        np.testing.assert_allclose(residual, 0., atol=1e-12)


class TestResidual(unittest.TestCase):
    """Tests for the residual of general states"""

    def setUp(self) -> None:
        """Preparation done for each test

        Creates a periodic mesh and a random state similar to the free-stream.
        """
        self.rng = np.random.default_rng(seed=1)
        self.mesh = create_rectangle_mesh(5, 4, periodic=True, triangulate=True)
        self.physics = FlowPhysicsConfig(mach_number=0.5, angle_of_attack=5.)

    def create_state(self, solver: FlowDiscretization) -> np.ndarray:
        """Creates a random state similar to the free-stream"""
        state = solver.initialize_unknowns()
        return state * ((self.rng.random(state.shape) - 0.5) * 0.1 + 1.)

    def test_conservation(self) -> None:
        """The residuals of periodic meshes sum up to zero"""
        for limiter in LIMITERS:
            with self.subTest(limiter=limiter):
                solver = FlowDiscretization(self.mesh, self.physics, FlowNumericsConfig(
                    reconstruction="LEASTSQUARES", limiter=limiter))
                residual, _ = solver.compute_residual(self.create_state(solver))
                np.testing.assert_allclose(np.sum(residual, axis=1), 0., atol=1e-12)
                self.assertGreater(np.max(np.abs(residual)), 1e-3)

    def test_threads(self) -> None:
        """The residual does not depend on the number of threads"""
        residuals = []
        timesteps = []
        state = None
        for num_threads in (1, 3):
            solver = FlowDiscretization(self.mesh, self.physics, FlowNumericsConfig(
                inviscid_flux="ROE", reconstruction="GREENGAUSS", limiter="BARTHJESPERSEN",
                num_threads=num_threads))
            if state is None:
                state = self.create_state(solver)
            residual, timestep = solver.compute_residual(state, compute_timestep=True)
            residuals.append(residual)
            timesteps.append(timestep)
        np.testing.assert_allclose(residuals[0], residuals[1], atol=1e-13, rtol=1e-12)
        np.testing.assert_allclose(timesteps[0], timesteps[1], rtol=1e-12)

    def test_first_order_face_states(self) -> None:
        """Face states of the first order scheme are the adjacent cell states"""
        solver = FlowDiscretization(self.mesh, self.physics)
        state = self.create_state(solver)
        uleft, uright = solver.compute_face_states(state)
        owners, neighbors = self.mesh.face_cells.T
        np.testing.assert_array_equal(uleft, state[:, owners])
        np.testing.assert_array_equal(uright, state[:, neighbors])

    def test_timestep(self) -> None:
        """Local time-step bounds of the free-stream on a uniform mesh"""
        mesh = create_rectangle_mesh(4, 4, markers=(1, 1, 1, 1))
        solver = FlowDiscretization(mesh, FlowPhysicsConfig(mach_number=0.5, farfield_marker=1))
        residual, timestep = solver.compute_residual(
            solver.initialize_unknowns(), compute_timestep=True)
        # sum of (|vₙ| + c)⋅l = 2⋅(1 + 2)⋅h + 2⋅(0 + 2)⋅h with c = 1/Ma = 2
        np.testing.assert_allclose(timestep, 0.25**2 / (10. * 0.25))
        _, timestep = solver.compute_residual(solver.initialize_unknowns())
        self.assertIsNone(timestep)

    def test_shape(self) -> None:
        """States of incorrect shape are rejected"""
        solver = FlowDiscretization(self.mesh, self.physics)
        with self.assertRaisesRegex(RuntimeError, "Incorrect shape"):
            solver.compute_residual(np.ones((4, self.mesh.num_cells + 1)))


class TestConfiguration(unittest.TestCase):
    """Tests for the configuration of the flow discretization"""

    def test_unknown_options(self) -> None:
        """Unknown scheme names fail at construction"""
        with self.assertRaisesRegex(ConfigurationError, "AUSM"):
            FlowNumericsConfig(inviscid_flux="AUSM")
        with self.assertRaisesRegex(ConfigurationError, "MINMOD"):
            FlowNumericsConfig(limiter="MINMOD")
        with self.assertRaisesRegex(ConfigurationError, "SPLINE"):
            FlowNumericsConfig(reconstruction="SPLINE")
        with self.assertRaisesRegex(ConfigurationError, "Jacobian flux"):
            FlowNumericsConfig(jacobian_flux="AUSM")

    def test_jacobian_flux_default(self) -> None:
        """The Jacobian flux defaults to the residual flux"""
        self.assertEqual(FlowNumericsConfig(inviscid_flux="HLL").jacobian_flux, "HLL")
        self.assertEqual(
            FlowNumericsConfig(inviscid_flux="HLL", jacobian_flux="LLF").jacobian_flux, "LLF")

    def test_physics(self) -> None:
        """Invalid physical parameters fail at construction"""
        with self.assertRaises(ConfigurationError):
            FlowPhysicsConfig(viscous=True)
        with self.assertRaises(ConfigurationError):
            FlowPhysicsConfig(mach_number=0.)
        with self.assertRaisesRegex(ConfigurationError, "distinct"):
            FlowPhysicsConfig(slip_wall_marker=1, farfield_marker=1)

    def test_limiter_without_reconstruction(self) -> None:
        """Limiters without reconstruction are reported"""
        mesh = create_rectangle_mesh(2, 2, periodic=True)
        with self.assertLogs("py_euler_fv.core", level="WARNING"):
            FlowDiscretization(mesh, numerics=FlowNumericsConfig(limiter="BARTHJESPERSEN"))

    def test_initial_condition(self) -> None:
        """Initial conditions"""
        mesh = create_rectangle_mesh(2, 3, periodic=True)
        solver = FlowDiscretization(mesh)
        state = solver.initialize_unknowns()
        self.assertEqual(state.shape, (4, 6))
        np.testing.assert_array_equal(state[:, 3], solver.free_stream_state)
        state[0] = 2.
        np.testing.assert_array_equal(solver.initialize_unknowns()[0], 1.)
        with self.assertRaisesRegex(ConfigurationError, "shock_tube"):
            solver.initialize_unknowns("shock_tube")


if __name__ == "__main__":
    unittest.main()
