"""Utility functions

This module implements utility functions for post-processing.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import numpy as np

from .mesh import Mesh
from .physics import HEAT_RATIO
from .physics import get_pressure
from .physics import get_sound_speed
from .physics import get_velocity


def get_cell_fields(state: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Gets the scalar and vector output fields

    Args:
        state: Conserved variables array in shape ``(NUM_VAR,...)``.

    Returns:
        Density, Mach number and pressure in shape ``(3,...)``, and velocity in shape
        ``(NUM_DIM,...)``.
    """
    velocity = get_velocity(state)
    mach_number = np.sqrt(velocity[0]**2 + velocity[1]**2) / get_sound_speed(state)
    return np.stack([state[0], mach_number, get_pressure(state)]), velocity


def get_point_fields(mesh: Mesh, state: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Gets the output fields at the mesh nodes

    The conserved variables are averaged to the nodes, weighted by the areas of the adjacent cells.

    Args:
        mesh: Mesh.
        state: Conserved variables array in shape ``(NUM_VAR,num_cells)``.

    Returns:
        Density, Mach number and pressure in shape ``(3,num_nodes)``, and velocity in shape
        ``(NUM_DIM,num_nodes)``.
    """
    num_var = state.shape[0]
    weighted = np.repeat(state * mesh.cell_areas, mesh.cell_num_nodes, axis=1)
    nodes = mesh.cells[mesh.cells >= 0]
    point_state = np.zeros((num_var, mesh.num_nodes))
    area_sums = np.zeros(mesh.num_nodes)
    np.add.at(point_state, (slice(None), nodes), weighted)
    np.add.at(area_sums, nodes, np.repeat(mesh.cell_areas, mesh.cell_num_nodes))
    return get_cell_fields(point_state / area_sums)


def get_entropy_error(
    state: np.ndarray,
    areas: np.ndarray,
    reference_state: np.ndarray,
) -> tuple[float, float]:
    """Gets the entropy error for convergence studies

    The error is the area-weighted L2 norm of the relative deviation of the entropy `p/ϱ^γ` from
    the entropy of the reference state.

    Args:
        state: Conserved variables array in shape ``(NUM_VAR,num_cells)``.
        areas: Cell areas in shape ``(num_cells)``.
        reference_state: Conserved variables of the reference state in shape ``(NUM_VAR)``.

    Returns:
        Decadic logarithm of the mesh size `h = 1/√num_cells` and of the entropy error.
    """
    reference_entropy = get_pressure(reference_state) / reference_state[0]**HEAT_RATIO
    deviation = (get_pressure(state) / state[0]**HEAT_RATIO - reference_entropy) / reference_entropy
    error = np.sqrt(np.sum(deviation**2 * areas))
    mesh_size = 1. / np.sqrt(len(areas))
    return float(np.log10(mesh_size)), float(np.log10(error))


def get_pressure_coefficient(
    state: np.ndarray,
    free_stream_state: np.ndarray,
) -> np.number | np.ndarray:
    """Gets the pressure coefficient

    Args:
        state: Conserved variables array in shape ``(NUM_VAR)`` or ``(NUM_VAR,...)``.
        free_stream_state: Conserved free-stream variables in shape ``(NUM_VAR)``.

    Returns:
        Pressure coefficient as scalar or as array in shape ``(...)``.
    """
    free_stream_velocity = get_velocity(free_stream_state)
    dynamic_pressure = 0.5 * free_stream_state[0] * (
        free_stream_velocity[0]**2 + free_stream_velocity[1]**2)
    return (get_pressure(state) - get_pressure(free_stream_state)) / dynamic_pressure
