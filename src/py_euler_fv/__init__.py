"""Finite volume discretization for the 2D compressible Euler and Navier-Stokes equations.

This package implements a cell-centered finite volume method for the spatial discretization of the
two-dimensional compressible Euler and Navier-Stokes equations on unstructured triangular and
quadrilateral meshes. It computes residuals, local time-step bounds and Jacobians, which are
consumed by implicit pseudo-time or time integrators outside the package.

Key features:
    * Upwind fluxes Van Leer, Roe, HLL, HLLC and local Lax-Friedrichs with exact Jacobians
    * Green-Gauss and weighted least-squares gradient reconstruction for second order
    * Barth-Jespersen, Venkatakrishnan, Van Albada and WENO limiters
    * Ghost-state boundary conditions and periodic meshes
    * Assembled block sparse Jacobians and matrix-free Jacobian-vector products
    * Scalar diffusion model problem sharing the discretization infrastructure

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

from .config import BoundaryMarkerError
from .config import ConfigurationError
from .config import FlowNumericsConfig
from .config import FlowPhysicsConfig
from .core import FlowDiscretization
from .core import SpatialDiscretization
from .diffusion import DiffusionDiscretization
from .jacobian import BlockDiagonalLowerUpper
from .jacobian import BlockMatrix
from .jacobian import SparseBlockMatrix
from .mesh import Mesh
from .mesh import create_annulus_mesh
from .mesh import create_rectangle_mesh
from .physics import HEAT_RATIO
from .physics import NUM_DIM
from .physics import NUM_VAR
from .utils import get_cell_fields
from .utils import get_entropy_error
from .utils import get_point_fields
from .utils import get_pressure_coefficient

__all__ = [
    "HEAT_RATIO",
    "NUM_DIM",
    "NUM_VAR",
    "BlockDiagonalLowerUpper",
    "BlockMatrix",
    "BoundaryMarkerError",
    "ConfigurationError",
    "DiffusionDiscretization",
    "FlowDiscretization",
    "FlowNumericsConfig",
    "FlowPhysicsConfig",
    "Mesh",
    "SparseBlockMatrix",
    "SpatialDiscretization",
    "create_annulus_mesh",
    "create_rectangle_mesh",
    "get_cell_fields",
    "get_entropy_error",
    "get_point_fields",
    "get_pressure_coefficient",
]
