"""Unstructured 2D mesh

This module provides the read-only mesh container consumed by the spatial discretizations together
with builders for simple meshes. Faces are stored with all boundary faces first, followed by the
interior faces. Every face has an owner cell, into which its unit normal points outward, and a
neighbor cell, which is ``-1`` for boundary faces.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

from collections.abc import Callable
from collections.abc import Sequence
from itertools import product

import numpy as np

from .physics import NUM_DIM

INTERIOR_MARKER = -1

# Marker used internally to identify faces to be paired periodically
_PERIODIC_PAIRING_MARKER = -2


class Mesh:
    """Read-only unstructured mesh

    All arrays are set to read-only on construction. Faces are reordered such that boundary faces
    occupy ``[0,num_boundary_faces)``. Triangles and quadrilaterals may be mixed, in which case
    ``cell_num_nodes`` holds the number of nodes per cell.
    """

    nodes: np.ndarray
    cells: np.ndarray
    cell_num_nodes: np.ndarray
    face_cells: np.ndarray
    face_nodes: np.ndarray
    face_markers: np.ndarray
    face_shifts: np.ndarray
    face_normals: np.ndarray
    face_lengths: np.ndarray
    cell_areas: np.ndarray
    num_boundary_faces: int

    def __init__(
        self,
        nodes: np.ndarray,
        cells: np.ndarray,
        face_cells: np.ndarray,
        face_nodes: np.ndarray,
        face_markers: np.ndarray,
        face_shifts: np.ndarray | None = None,
    ) -> None:
        """Initialize the mesh

        Args:
            nodes: Node coordinates in shape ``(NUM_DIM,num_nodes)``.
            cells: Counter-clockwise node indices per cell in shape
                ``(num_cells,max_nodes_per_cell)``. Cells with fewer nodes, such as the triangles
                of a hybrid mesh, are padded with trailing ``-1``.
            face_cells: Owner and neighbor cell per face in shape ``(num_faces,2)``, where the
                neighbor is ``-1`` for boundary faces.
            face_nodes: Start and end node per face in shape ``(num_faces,2)``, traversed
                counter-clockwise with respect to the owner.
            face_markers: Boundary marker per face in shape ``(num_faces)``. Ignored for interior
                faces.
            face_shifts: Translation mapping the neighbor's coordinates into the owner's frame in
                shape ``(NUM_DIM,num_faces)``. Non-zero only across periodic faces.

        Raises:
            ValueError: If a face has zero length, a cell has less than three nodes or the
                connectivity is inconsistent.
        """
        face_cells = np.asarray(face_cells, dtype=int)
        if face_shifts is None:
            face_shifts = np.zeros((NUM_DIM, len(face_cells)))
        order = np.argsort(face_cells[:, 1] >= 0, kind="stable")
        self.nodes = np.array(nodes, dtype=float)
        self.cells = np.array(cells, dtype=int)
        self.cell_num_nodes = self._get_num_nodes(self.cells)
        self.face_cells = face_cells[order]
        self.face_nodes = np.asarray(face_nodes, dtype=int)[order]
        self.face_markers = np.asarray(face_markers, dtype=int)[order]
        self.face_shifts = np.array(face_shifts, dtype=float)[:, order]
        self.num_boundary_faces = int(np.count_nonzero(self.face_cells[:, 1] < 0))
        self.face_markers[self.num_boundary_faces:] = INTERIOR_MARKER
        if np.any(self.face_cells[:, 0] < 0) or np.any(self.face_cells >= len(self.cells)):
            msg = "Face to cell connectivity refers to non-existing cells"
            raise ValueError(msg)
        tangents = self.nodes[:, self.face_nodes[:, 1]] - self.nodes[:, self.face_nodes[:, 0]]
        self.face_lengths = np.hypot(*tangents)
        if np.any(self.face_lengths <= np.finfo(float).tiny):
            msg = f"Faces {np.flatnonzero(self.face_lengths <= 0.).tolist()} have zero length"
            raise ValueError(msg)
        self.face_normals = np.stack([tangents[1], -tangents[0]]) / self.face_lengths
        self.cell_areas = self._get_signed_areas(self.nodes, self.cells)
        if np.any(self.cell_areas <= 0.):
            msg = "Cells must be non-degenerate and ordered counter-clockwise"
            raise ValueError(msg)
        for array in (
            self.nodes, self.cells, self.cell_num_nodes, self.face_cells, self.face_nodes,
            self.face_markers, self.face_shifts, self.face_normals, self.face_lengths,
            self.cell_areas,
        ):
            array.flags.writeable = False

    @property
    def num_cells(self) -> int:
        """Number of cells"""
        return len(self.cells)

    @property
    def num_faces(self) -> int:
        """Number of faces, boundary and interior"""
        return len(self.face_cells)

    @property
    def num_interior_faces(self) -> int:
        """Number of interior faces"""
        return self.num_faces - self.num_boundary_faces

    @property
    def num_nodes(self) -> int:
        """Number of nodes"""
        return self.nodes.shape[1]

    @property
    def face_midpoints(self) -> np.ndarray:
        """Face midpoints in shape ``(NUM_DIM,num_faces)``"""
        return 0.5 * (self.nodes[:, self.face_nodes[:, 0]] + self.nodes[:, self.face_nodes[:, 1]])

    @staticmethod
    def _get_num_nodes(cells: np.ndarray) -> np.ndarray:
        """Gets the number of nodes per cell and checks that the padding is trailing"""
        num_nodes = np.count_nonzero(cells >= 0, axis=1)
        if np.any(num_nodes < 3) or np.any(
                (cells >= 0) != (np.arange(cells.shape[1]) < num_nodes[:, None])):
            msg = "Cells need at least three nodes followed by the padding only"
            raise ValueError(msg)
        return num_nodes

    @staticmethod
    def _pad_cells(cells: np.ndarray | Sequence[Sequence[int]]) -> np.ndarray:
        """Gets the cells as an array padded with ``-1``, if given with varying number of nodes"""
        if isinstance(cells, np.ndarray):
            return np.array(cells, dtype=int)
        cells = [[int(node) for node in cell] for cell in cells]
        width = max(len(cell) for cell in cells)
        return np.array([cell + [-1] * (width - len(cell)) for cell in cells], dtype=int)

    @staticmethod
    def _get_signed_areas(nodes: np.ndarray, cells: np.ndarray) -> np.ndarray:
        """Gets the signed cell areas by the shoelace formula

        The padding is replaced by the last node of the cell, which adds degenerate edges only.
        """
        num_nodes = np.count_nonzero(cells >= 0, axis=1)
        cells = np.take_along_axis(
            cells, np.minimum(np.arange(cells.shape[1]), num_nodes[:, None] - 1), axis=1)
        points_x, points_y = nodes[:, cells]
        return 0.5 * np.sum(
            points_x * np.roll(points_y, -1, axis=1) - np.roll(points_x, -1, axis=1) * points_y,
            axis=1,
        )

    @classmethod
    def from_cells(
        cls,
        nodes: np.ndarray,
        cells: np.ndarray | Sequence[Sequence[int]],
        get_marker: Callable[[float, float], int],
        periodic_shifts: Sequence[tuple[float, float]] = (),
    ) -> "Mesh":
        """Builds the mesh from the cell to node connectivity

        Cells are re-oriented counter-clockwise. Boundary faces are assigned the marker returned by
        ``get_marker`` at their midpoint. Boundary faces whose midpoints are translations of each
        other by one of ``periodic_shifts`` are paired into interior faces, if ``get_marker``
        returned ``None`` for both of them.

        Args:
            nodes: Node coordinates in shape ``(NUM_DIM,num_nodes)``.
            cells: Node indices per cell, either in shape ``(num_cells,max_nodes_per_cell)`` padded
                with trailing ``-1``, or as a sequence of cells with varying number of nodes.
            get_marker: Function of the face midpoint coordinates returning the boundary marker.
            periodic_shifts: Translations between periodic boundaries.

        Returns:
            Mesh.
        """
        nodes = np.asarray(nodes, dtype=float)
        cells = cls._pad_cells(cells)
        num_nodes = cls._get_num_nodes(cells)
        for cell in np.flatnonzero(cls._get_signed_areas(nodes, cells) < 0.):
            cells[cell, :num_nodes[cell]] = cells[cell, num_nodes[cell] - 1::-1]
        edges = {}
        face_cells = []
        face_nodes = []
        for cell, cell_nodes in enumerate(cells):
            cell_nodes = cell_nodes[:num_nodes[cell]]
            for start, end in zip(cell_nodes, np.roll(cell_nodes, -1)):
                face = edges.pop((end, start), None)
                if face is None:
                    edges[start, end] = len(face_cells)
                    face_cells.append([cell, -1])
                    face_nodes.append([start, end])
                else:
                    face_cells[face][1] = cell
        face_cells = np.array(face_cells, dtype=int)
        face_nodes = np.array(face_nodes, dtype=int)
        face_markers = np.full(len(face_cells), INTERIOR_MARKER)
        face_shifts = np.zeros((NUM_DIM, len(face_cells)))
        midpoints = 0.5 * (nodes[:, face_nodes[:, 0]] + nodes[:, face_nodes[:, 1]])
        for face in edges.values():
            marker = get_marker(*midpoints[:, face])
            face_markers[face] = _PERIODIC_PAIRING_MARKER if marker is None else marker
        cls._pair_periodic_faces(
            midpoints, face_cells, face_markers, face_shifts, periodic_shifts)
        periodic = face_markers == _PERIODIC_PAIRING_MARKER
        if np.any(periodic & (face_cells[:, 1] < 0)):
            msg = (f"Periodic boundary faces "
                   f"{np.flatnonzero(periodic & (face_cells[:, 1] < 0)).tolist()} have no partner")
            raise ValueError(msg)
        unmarked = (face_markers == INTERIOR_MARKER) & (face_cells[:, 1] < 0)
        if np.any(unmarked):
            msg = f"Boundary faces {np.flatnonzero(unmarked).tolist()} have no marker"
            raise ValueError(msg)
        # the second face of each periodic pair is a duplicate
        keep = ~periodic
        return cls(
            nodes, cells, face_cells[keep], face_nodes[keep], face_markers[keep],
            face_shifts[:, keep],
        )

    @staticmethod
    def _pair_periodic_faces(
        midpoints: np.ndarray,
        face_cells: np.ndarray,
        face_markers: np.ndarray,
        face_shifts: np.ndarray,
        periodic_shifts: Sequence[tuple[float, float]],
    ) -> None:
        """Pairs periodic boundary faces in-place

        The first face of each pair becomes an interior face, the second keeps the pairing marker
        and is a duplicate to be dropped.
        """
        candidates = np.flatnonzero(face_markers == _PERIODIC_PAIRING_MARKER)
        lookup = {tuple(np.round(midpoints[:, face], 9)): face for face in candidates}
        for face, shift in product(candidates, periodic_shifts):
            if face_cells[face, 1] >= 0:
                continue
            partner = lookup.get(tuple(np.round(midpoints[:, face] + shift, 9)))
            if partner is None or face_cells[partner, 1] >= 0:
                continue
            face_cells[face, 1] = face_cells[partner, 0]
            face_cells[partner, 1] = face_cells[face, 0]
            face_markers[face] = INTERIOR_MARKER
            face_shifts[:, face] = -np.asarray(shift)


def create_rectangle_mesh(
    num_x: int,
    num_y: int,
    lower: tuple[float, float] = (0., 0.),
    upper: tuple[float, float] = (1., 1.),
    markers: tuple[int, int, int, int] = (1, 2, 3, 4),
    triangulate: bool = False,
    hybrid: bool = False,
    periodic: bool = False,
    perturbation: float = 0.,
    seed: int | None = None,
) -> Mesh:
    """Creates a mesh of a rectangle

    Args:
        num_x: Number of cells in x-direction.
        num_y: Number of cells in y-direction.
        lower: Lower left corner.
        upper: Upper right corner.
        markers: Boundary markers of the bottom, right, top and left side.
        triangulate: Whether to split each quadrilateral into two triangles.
        hybrid: Whether to split only the quadrilaterals of the left half into triangles, which
            results in a mesh of mixed cell types.
        periodic: Whether to connect opposite sides periodically. ``markers`` are then unused.
        perturbation: Random displacement of interior nodes relative to the cell size.
        seed: Seed for the random displacement.

    Returns:
        Mesh.
    """
    size_x = upper[0] - lower[0]
    size_y = upper[1] - lower[1]
    points_x, points_y = np.meshgrid(
        np.linspace(lower[0], upper[0], num_x + 1),
        np.linspace(lower[1], upper[1], num_y + 1),
        indexing="ij",
    )
    if perturbation > 0.:
        rng = np.random.default_rng(seed)
        points_x[1:-1, 1:-1] += perturbation * size_x / num_x * (
            rng.random((num_x - 1, num_y - 1)) - 0.5)
        points_y[1:-1, 1:-1] += perturbation * size_y / num_y * (
            rng.random((num_x - 1, num_y - 1)) - 0.5)
    nodes = np.stack([points_x.ravel(), points_y.ravel()])
    index = np.arange((num_x + 1) * (num_y + 1)).reshape(num_x + 1, num_y + 1)
    quads = np.stack([
        index[:-1, :-1].ravel(), index[1:, :-1].ravel(),
        index[1:, 1:].ravel(), index[:-1, 1:].ravel(),
    ], axis=1)
    if triangulate:
        cells = np.concatenate([quads[:, [0, 1, 2]], quads[:, [0, 2, 3]]])
    elif hybrid:
        split = np.arange(num_x * num_y) < num_x // 2 * num_y
        cells = [*quads[split][:, [0, 1, 2]], *quads[split][:, [0, 2, 3]], *quads[~split]]
    else:
        cells = quads
    tolerance = 1e-9 * max(size_x, size_y)
    bottom, right, top, left = markers

    def get_marker(x: float, y: float) -> int | None:
        if periodic:
            return None
        if abs(y - lower[1]) < tolerance:
            return bottom
        if abs(x - upper[0]) < tolerance:
            return right
        if abs(y - upper[1]) < tolerance:
            return top
        return left

    return Mesh.from_cells(
        nodes, cells, get_marker,
        periodic_shifts=((size_x, 0.), (0., size_y)) if periodic else (),
    )


def create_annulus_mesh(
    num_radial: int,
    num_angular: int,
    inner_radius: float = 1.,
    outer_radius: float = 1.384,
    markers: tuple[int, int, int, int] = (2, 2, 10, 5),
) -> Mesh:
    """Creates a mesh of the quarter annulus in the first quadrant

    This is the domain of the supersonic vortex, entering through the left side (on the y-axis)
    and leaving through the bottom side (on the x-axis).

    Args:
        num_radial: Number of cells in radial direction.
        num_angular: Number of cells in angular direction.
        inner_radius: Inner radius.
        outer_radius: Outer radius.
        markers: Boundary markers of the inner arc, the outer arc, the left and the bottom side.

    Returns:
        Mesh.
    """
    radius, angle = np.meshgrid(
        np.linspace(inner_radius, outer_radius, num_radial + 1),
        np.linspace(0., np.pi / 2, num_angular + 1),
        indexing="ij",
    )
    nodes = np.stack([(radius * np.cos(angle)).ravel(), (radius * np.sin(angle)).ravel()])
    nodes[:, np.abs(nodes[0]) < 1e-14] *= [[0.], [1.]]
    index = np.arange((num_radial + 1) * (num_angular + 1)).reshape(num_radial + 1, -1)
    cells = np.stack([
        index[:-1, :-1].ravel(), index[1:, :-1].ravel(),
        index[1:, 1:].ravel(), index[:-1, 1:].ravel(),
    ], axis=1)
    inner, outer, left, bottom = markers
    tolerance = 1e-9 * outer_radius

    def get_marker(x: float, y: float) -> int:
        if abs(x) < tolerance:
            return left
        if abs(y) < tolerance:
            return bottom
        return inner if np.hypot(x, y) < 0.5 * (inner_radius + outer_radius) else outer

    return Mesh.from_cells(nodes, cells, get_marker)
