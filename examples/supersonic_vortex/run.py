#!/usr/bin/env python

"""Converges the supersonic vortex to steady-state and reports the entropy error.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging
from argparse import ArgumentParser

import numpy as np
from scipy.sparse.linalg import spsolve

from py_euler_fv import FlowDiscretization
from py_euler_fv import FlowNumericsConfig
from py_euler_fv import FlowPhysicsConfig
from py_euler_fv import create_annulus_mesh
from py_euler_fv import get_entropy_error
from py_euler_fv.config import INVISCID_FLUXES
from py_euler_fv.config import LIMITERS
from py_euler_fv.config import RECONSTRUCTIONS
from py_euler_fv.physics import get_supersonic_vortex_state

parser = ArgumentParser(
    description="Converges the supersonic vortex between two concentric arcs to steady-state.")
parser.add_argument(
    "--num-radial", type=int, default=8,
    help="Number of cells in radial direction. (default: %(default)s)")
parser.add_argument(
    "--num-angular", type=int, default=32,
    help="Number of cells in angular direction. (default: %(default)s)")
parser.add_argument(
    "--flux", type=str, default="ROE", choices=INVISCID_FLUXES,
    help="Inviscid flux. (default: %(default)s)")
parser.add_argument(
    "--reconstruction", type=str, default="LEASTSQUARES", choices=RECONSTRUCTIONS,
    help="Gradient reconstruction. (default: %(default)s)")
parser.add_argument(
    "--limiter", type=str, default="NONE", choices=LIMITERS,
    help="Limiter. (default: %(default)s)")
parser.add_argument(
    "--threads", type=int, default=1,
    help="Number of threads for the face loops. (default: %(default)s)")
parser.add_argument(
    "--rtol", type=float, default=1e-9,
    help="Residual tolerance to reach relative to initial residual. (default: %(default)s)")
parser.add_argument(
    "--iter", type=int, default=100,
    help="Maximum number of PTC iterations. (default: %(default)s)")
parser.add_argument("--verbose", action="store_true", help="Log the discretization setup.")
args = parser.parse_args()

logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

print(f"{'Mesh:':<25} {args.num_radial} x {args.num_angular} cells")
print(f"{'Inviscid flux:':<25} {args.flux}")
print(f"{'Reconstruction:':<25} {args.reconstruction}")
print(f"{'Limiter:':<25} {args.limiter}")

# Quarter annulus with slip walls on the arcs, inflow on the y-axis and outflow on the x-axis
mesh = create_annulus_mesh(args.num_radial, args.num_angular)
solver = FlowDiscretization(
    mesh,
    FlowPhysicsConfig(
        mach_number=2.25,
        slip_wall_marker=2,
        supersonic_vortex_marker=10,
        extrapolation_marker=5,
    ),
    FlowNumericsConfig(
        inviscid_flux=args.flux,
        reconstruction=args.reconstruction,
        limiter=args.limiter,
        num_threads=args.threads,
    ),
)
state = solver.initialize_unknowns("supersonic_vortex")

# Compute the ∞-norm of the residual associated to the initial state
residual, _ = solver.compute_residual(state)
norm_initial = np.max(np.abs(residual))

# Jacobian storage reused by all iterations
matrix = solver.create_matrix()
identity = np.eye(solver.num_var)[..., None]
cells = np.arange(mesh.num_cells)

# Run pseudo-transient continuation (PTC)
print(f"\nPseudo-transient continuation:\n{'it':>6} {'residual':>15} {'rel residual':>15}")
for nt in range(args.iter):

    # Compute the residual and the local time-step bounds of the current state
    residual, timestep = solver.compute_residual(state, compute_timestep=True)
    norm = np.max(np.abs(residual))
    rel_norm = norm / norm_initial
    print(f"{nt:>6} {norm:>15.1e} {rel_norm:>15.1e}")

    # If satisfied, break.
    if rel_norm <= args.rtol or np.isnan(rel_norm):
        break

    # Get the local pseudo time-step sizes by switched evolution relaxation (SER)
    time_step_size = 1.e1 * rel_norm**-1. * timestep

    # Solve `(A/Δt + ∂R/∂U)⋅ΔU = -R` for the update
    solver.compute_jacobian(state, matrix)
    matrix.update_diagonal_blocks(cells, identity * (mesh.cell_areas / time_step_size))
    update = spsolve(matrix.to_csr(), -residual.ravel(order="F"))

    # Update the state
    state += update.reshape(state.shape, order="F")

# Entropy error wrt the isentropic exact solution
log_size, log_error = get_entropy_error(state, mesh.cell_areas, get_supersonic_vortex_state(1.))
print(f"\n{'log10(h):':<25} {log_size:.4f}")
print(f"{'log10(entropy error):':<25} {log_error:.4f}")
