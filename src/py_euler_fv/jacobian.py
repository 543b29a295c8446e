"""Block sparse matrices for the assembled Jacobians

This module implements the storage backends into which the Jacobian assemblers write. Blocks are
variable-major, i.e. in shape ``(block_size,block_size,num_blocks)``. Vectors are variable-major
arrays in shape ``(block_size,num_cells)``, which are flattened cell by cell (FORTRAN order) to
match the block ordering of the assembled sparse matrices.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

from abc import ABC
from abc import abstractmethod

import numpy as np
from scipy.sparse import bsr_array
from scipy.sparse import coo_array
from scipy.sparse import csr_array


def assemble_bsr(
    rows: np.ndarray,
    columns: np.ndarray,
    blocks: np.ndarray,
    num_cells: int,
) -> bsr_array:
    """Assembles blocks at arbitrary block positions, summing duplicates

    Args:
        rows: Block row indices in shape ``(num_blocks)``.
        columns: Block column indices in shape ``(num_blocks)``.
        blocks: Blocks in shape ``(block_size,block_size,num_blocks)``.
        num_cells: Number of block rows and block columns.

    Returns:
        Block sparse matrix.
    """
    block_size = blocks.shape[0]
    offsets = np.arange(block_size)
    entry_rows = rows[None, None, :] * block_size + offsets[:, None, None]
    entry_columns = columns[None, None, :] * block_size + offsets[None, :, None]
    shape = (num_cells * block_size, num_cells * block_size)
    matrix = coo_array((
        blocks.ravel(),
        (np.broadcast_to(entry_rows, blocks.shape).ravel(),
         np.broadcast_to(entry_columns, blocks.shape).ravel()),
    ), shape=shape)
    return matrix.tocsr().tobsr(blocksize=(block_size, block_size))


class BlockMatrix(ABC):
    """Interface of the Jacobian storage used by the assemblers"""

    num_cells: int
    block_size: int

    def __init__(self, num_cells: int, block_size: int) -> None:
        self.num_cells = num_cells
        self.block_size = block_size

    @abstractmethod
    def set_all_zero(self) -> None:
        """Removes or zeroes all blocks"""

    @abstractmethod
    def update_diagonal_blocks(self, cells: np.ndarray, blocks: np.ndarray) -> None:
        """Adds blocks to the diagonal

        Args:
            cells: Cell indices in shape ``(num_blocks)``, may contain duplicates.
            blocks: Blocks in shape ``(block_size,block_size,num_blocks)``.
        """

    @abstractmethod
    def insert_face_blocks(
        self,
        faces: np.ndarray,
        owners: np.ndarray,
        neighbors: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
    ) -> None:
        """Sets the off-diagonal blocks coupling the cells adjacent to interior faces

        Args:
            faces: Interior face indices, counted from the first interior face.
            owners: Owner cells of the faces.
            neighbors: Neighbor cells of the faces.
            lower: Blocks at (neighbor row, owner column) in shape
                ``(block_size,block_size,num_faces)``.
            upper: Blocks at (owner row, neighbor column) in shape
                ``(block_size,block_size,num_faces)``.
        """

    @abstractmethod
    def to_bsr(self) -> bsr_array:
        """Assembles the matrix in block sparse row format"""

    def to_csr(self, shift: float | complex = 0.) -> csr_array:
        """Assembles the matrix in compressed sparse row format

        Args:
            shift: Shift value to subtract from the main diagonal.

        Returns:
            (Shifted) matrix as CSR matrix.
        """
        matrix = csr_array(self.to_bsr(), dtype=np.promote_types(type(shift), float))
        # apply possibly complex shift
        if shift != 0.:
            matrix.setdiag(matrix.diagonal() - shift)
        return matrix

    def matvec(self, vector: np.ndarray) -> np.ndarray:
        """Multiplies the matrix with a vector

        Args:
            vector: Vector in shape ``(block_size,num_cells)``.

        Returns:
            Matrix-vector-product in shape ``(block_size,num_cells)``.
        """
        return (self.to_bsr() @ vector.ravel(order="F")).reshape(vector.shape, order="F")


class BlockDiagonalLowerUpper(BlockMatrix):
    """Diagonal, lower and upper blocks indexed by cell and interior face

    The lower block of an interior face couples the neighbor's row to the owner's column, the upper
    block couples the owner's row to the neighbor's column.
    """

    diagonal: np.ndarray
    lower: np.ndarray
    upper: np.ndarray

    def __init__(self, num_cells: int, face_cells: np.ndarray, block_size: int) -> None:
        """Initialize the blocks with zero

        Args:
            num_cells: Number of cells.
            face_cells: Owner and neighbor cell per interior face in shape
                ``(num_interior_faces,2)``.
            block_size: Number of variables per cell.
        """
        super().__init__(num_cells, block_size)
        self.owners, self.neighbors = np.asarray(face_cells).T
        self.diagonal = np.zeros((block_size, block_size, num_cells))
        self.lower = np.zeros((block_size, block_size, len(self.owners)))
        self.upper = np.zeros((block_size, block_size, len(self.owners)))

    def set_all_zero(self) -> None:
        self.diagonal[:] = 0.
        self.lower[:] = 0.
        self.upper[:] = 0.

    def update_diagonal_blocks(self, cells: np.ndarray, blocks: np.ndarray) -> None:
        np.add.at(self.diagonal, (slice(None), slice(None), cells), blocks)

    def insert_face_blocks(
        self,
        faces: np.ndarray,
        owners: np.ndarray,
        neighbors: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
    ) -> None:
        if np.any(self.owners[faces] != owners) or np.any(self.neighbors[faces] != neighbors):
            msg = "Face connectivity differs from the one the blocks were allocated for"
            raise RuntimeError(msg)
        self.lower[..., faces] = lower
        self.upper[..., faces] = upper

    def to_bsr(self) -> bsr_array:
        cells = np.arange(self.num_cells)
        return assemble_bsr(
            np.concatenate([cells, self.neighbors, self.owners]),
            np.concatenate([cells, self.owners, self.neighbors]),
            np.concatenate([self.diagonal, self.lower, self.upper], axis=2),
            self.num_cells,
        )

    def matvec(self, vector: np.ndarray) -> np.ndarray:
        result = np.einsum("ijn,jn->in", self.diagonal, vector)
        np.add.at(
            result, (slice(None), self.neighbors),
            np.einsum("ijn,jn->in", self.lower, vector[:, self.owners]),
        )
        np.add.at(
            result, (slice(None), self.owners),
            np.einsum("ijn,jn->in", self.upper, vector[:, self.neighbors]),
        )
        return result


class SparseBlockMatrix(BlockMatrix):
    """Blocks at arbitrary positions, assembled on demand

    Blocks added repeatedly at the same position are summed.
    """

    def __init__(self, num_cells: int, block_size: int) -> None:
        super().__init__(num_cells, block_size)
        self._rows = []
        self._columns = []
        self._blocks = []

    def set_all_zero(self) -> None:
        self._rows.clear()
        self._columns.clear()
        self._blocks.clear()

    def add_blocks(self, rows: np.ndarray, columns: np.ndarray, blocks: np.ndarray) -> None:
        """Adds blocks at arbitrary block positions

        Args:
            rows: Block row indices in shape ``(num_blocks)``.
            columns: Block column indices in shape ``(num_blocks)``.
            blocks: Blocks in shape ``(block_size,block_size,num_blocks)``.
        """
        self._rows.append(np.asarray(rows, dtype=int))
        self._columns.append(np.asarray(columns, dtype=int))
        self._blocks.append(np.array(blocks, dtype=float))

    def update_diagonal_blocks(self, cells: np.ndarray, blocks: np.ndarray) -> None:
        self.add_blocks(cells, cells, blocks)

    def insert_face_blocks(
        self,
        faces: np.ndarray,
        owners: np.ndarray,
        neighbors: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
    ) -> None:
        self.add_blocks(neighbors, owners, lower)
        self.add_blocks(owners, neighbors, upper)

    def to_bsr(self) -> bsr_array:
        if not self._blocks:
            return bsr_array(
                (self.num_cells * self.block_size,) * 2, blocksize=(self.block_size,) * 2)
        return assemble_bsr(
            np.concatenate(self._rows),
            np.concatenate(self._columns),
            np.concatenate(self._blocks, axis=2),
            self.num_cells,
        )
