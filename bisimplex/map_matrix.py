from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

import numpy as np
from numpy.typing import NDArray


class MapMatrix:
    """
    Column-sparse integer matrix.

    Each column is a dict ``row -> coefficient``; zero coefficients are never
    stored. This is the form in which boundary, merge and split matrices are
    handed to a reduction algorithm, which consumes them column by column.
    """

    def __init__(self, num_rows: int, num_columns: int = 0):
        if num_rows < 0 or num_columns < 0:
            raise ValueError(f"Matrix dimensions must be non-negative, got ({num_rows}, {num_columns})")
        self.num_rows = num_rows
        self._columns: List[Dict[int, int]] = [dict() for _ in range(num_columns)]

    @property
    def num_columns(self) -> int:
        return len(self._columns)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.num_rows, self.num_columns)

    def _check(self, row: int, col: int):
        if not 0 <= row < self.num_rows:
            raise IndexError(f"Row {row} out of range for matrix of shape {self.shape}")
        if not 0 <= col < self.num_columns:
            raise IndexError(f"Column {col} out of range for matrix of shape {self.shape}")

    def set(self, row: int, col: int, value: int):
        self._check(row, col)
        if value == 0:
            self._columns[col].pop(row, None)
        else:
            self._columns[col][row] = int(value)

    def get(self, row: int, col: int) -> int:
        self._check(row, col)
        return self._columns[col].get(row, 0)

    def add_column(self, entries: Iterable[Tuple[int, int]] = ()) -> int:
        """Append a column given as ``(row, coefficient)`` pairs; returns its index."""
        self._columns.append(dict())
        col = len(self._columns) - 1
        for row, value in entries:
            self.set(row, col, value)
        return col

    def column(self, col: int) -> List[Tuple[int, int]]:
        """Nonzero entries of a column as ``(row, coefficient)``, sorted by row."""
        if not 0 <= col < self.num_columns:
            raise IndexError(f"Column {col} out of range for matrix of shape {self.shape}")
        return sorted(self._columns[col].items())

    def nnz(self) -> int:
        return sum(len(c) for c in self._columns)

    def to_array(self) -> NDArray[np.int64]:
        A = np.zeros(self.shape, dtype=np.int64)
        for j, col in enumerate(self._columns):
            for i, value in col.items():
                A[i, j] = value
        return A

    def __eq__(self, other) -> bool:
        if not isinstance(other, MapMatrix):
            return NotImplemented
        return self.shape == other.shape and self._columns == other._columns

    def __repr__(self) -> str:
        return f"MapMatrix(shape={self.shape}, nnz={self.nnz()})"


@dataclass
class ExtractedMatrix:
    """
    A matrix together with the global simplex indexes of its rows and columns.

    ``rows[i]`` is the global index of the simplex in row ``i``, and likewise
    for ``columns``. For merge and split matrices the column list is the
    concatenation of two complexes, so a global index can occur twice.
    """
    matrix: MapMatrix
    rows: List[int] = field(default_factory=list)
    columns: List[int] = field(default_factory=list)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def to_array(self) -> NDArray[np.int64]:
        return self.matrix.to_array()
