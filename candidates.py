# candidates.py
"""
Per-row candidate lists for the assignment search.

Each row keeps only its K closest columns, sorted ascending by distance
with ties broken by column index, so branching is bounded and runs are
reproducible. The true row minimum is taken over all columns before
truncation; it is the row's contribution to the lower bound.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from errors import DataError
from matrix_io import DistanceMatrix

DEFAULT_CANDIDATE_WIDTH = 10


def reduce_row(distances: np.ndarray, width: int = DEFAULT_CANDIDATE_WIDTH,
               label: Optional[str] = None) -> Tuple[np.ndarray, float]:
    """
    Reduce one row's distance vector to its candidate list.

    Args:
        distances: Distances from this row to every column
        width: Maximum number of candidates kept (K)
        label: Row label used in error messages

    Returns:
        (columns, row_minimum) with columns ordered by (distance, column)

    Raises:
        DataError: If any distance is NaN
        ValueError: If width < 1 or the row is empty
    """
    if width < 1:
        raise ValueError(f"Candidate width must be at least 1, got {width}")

    values = np.asarray(distances, dtype=np.float64)
    if values.size == 0:
        raise ValueError("Cannot reduce an empty distance row")

    nan_columns = np.flatnonzero(np.isnan(values))
    if nan_columns.size:
        where = f"row '{label}'" if label is not None else "row"
        raise DataError(f"NaN distance in {where} at column index(es) {nan_columns.tolist()}")

    # lexsort: last key is primary
    order = np.lexsort((np.arange(values.size), values))
    return order[:width].astype(np.int64), float(values[order[0]])


@dataclass(frozen=True)
class CandidateTable:
    """Candidate lists and row minimums for every row of a matrix."""
    columns: Tuple[np.ndarray, ...]
    row_minimums: np.ndarray
    distances: np.ndarray
    width: int

    @property
    def n_rows(self) -> int:
        return len(self.columns)

    @property
    def n_columns(self) -> int:
        return self.distances.shape[1]

    @property
    def is_exhaustive(self) -> bool:
        """True when no row's list was truncated."""
        return self.width >= self.n_columns

    def candidate_distances(self, row: int) -> np.ndarray:
        return self.distances[row, self.columns[row]]


def build_candidate_table(matrix: DistanceMatrix,
                          width: int = DEFAULT_CANDIDATE_WIDTH) -> CandidateTable:
    """Reduce every row of the matrix."""
    columns = []
    row_minimums = np.empty(matrix.n_rows, dtype=np.float64)
    for row, item in enumerate(matrix.row_items):
        row_columns, row_minimums[row] = reduce_row(matrix.values[row], width, item.label)
        columns.append(row_columns)
    row_minimums.setflags(write=False)
    return CandidateTable(tuple(columns), row_minimums, matrix.values, width)
