# matrix_io.py
"""
Reading R/S distance tables into a dense matrix.

The input is a whitespace-separated text table (as written by R's
write.table for cophenetic distances): a header of item labels with no
corner cell, then one line per row item holding its label and one value
per header column. Header labels starting with the row prefix are row
items, those starting with the column prefix are column items, and
anything else is ignored. Only values under column-item headers are kept.
"""

import numpy as np
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from errors import CapacityError, InputReadError, ParseError

# Paths store column indices with this dtype, which caps the column count
PATH_DTYPE = np.uint16
MAX_COLUMNS = int(np.iinfo(PATH_DTYPE).max)

ROW = "row"
COLUMN = "column"


#-----------------------------------------------------------------------------
# Core data structures
#-----------------------------------------------------------------------------
@dataclass(frozen=True)
class Item:
    """A labeled member of the row set or the column set."""
    label: str
    category: str
    index: int


class DistanceMatrix:
    """
    Row items, column items and a dense (n_rows, n_columns) distance array.

    The array is read-only once built.
    """

    def __init__(self, row_items: List[Item], column_items: List[Item], values: np.ndarray):
        self.row_items = list(row_items)
        self.column_items = list(column_items)
        self.values = np.array(values, dtype=np.float64)
        self.values.setflags(write=False)
        self._validate_shapes()

    def _validate_shapes(self):
        """Ensure array shape and item lists agree."""
        expected = (len(self.row_items), len(self.column_items))
        if self.values.shape != expected:
            raise ValueError(f"Distance array has shape {self.values.shape}, expected {expected}")

    @classmethod
    def from_labels(cls, row_labels: Iterable[str], column_labels: Iterable[str],
                    values) -> "DistanceMatrix":
        """Build a matrix directly from label lists and a 2-D array."""
        rows = [Item(label, ROW, i) for i, label in enumerate(row_labels)]
        columns = [Item(label, COLUMN, j) for j, label in enumerate(column_labels)]
        return cls(rows, columns, np.asarray(values, dtype=np.float64).reshape(len(rows), len(columns)))

    @property
    def n_rows(self) -> int:
        return len(self.row_items)

    @property
    def n_columns(self) -> int:
        return len(self.column_items)

    @property
    def row_labels(self) -> List[str]:
        return [item.label for item in self.row_items]

    @property
    def column_labels(self) -> List[str]:
        return [item.label for item in self.column_items]

    def distance(self, row: int, column: int) -> float:
        return float(self.values[row, column])


#-----------------------------------------------------------------------------
# Parsing
#-----------------------------------------------------------------------------
def clean_token(token: str) -> str:
    """Strip a trailing carriage return and surrounding double quotes."""
    if token.endswith('\r'):
        token = token[:-1]
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        token = token[1:-1]
    return token


def tokenize_line(line: str) -> List[str]:
    """Split one line of the table into cleaned tokens."""
    return [clean_token(token) for token in line.rstrip('\n').split()]


def parse_header(tokens: List[str], row_prefix: str = "R",
                 column_prefix: str = "S") -> Tuple[List[str], List[str], List[int]]:
    """
    Classify header tokens.

    Returns:
        (row_labels, column_labels, column_positions) where column_positions
        holds the header position of each column label
    """
    row_labels = []
    column_labels = []
    column_positions = []
    for position, token in enumerate(tokens):
        if token.startswith(row_prefix):
            row_labels.append(token)
        elif token.startswith(column_prefix):
            column_labels.append(token)
            column_positions.append(position)
    return row_labels, column_labels, column_positions


def _parse_values(tokens: List[str], line_number: int, source: str) -> List[float]:
    values = []
    for token in tokens:
        try:
            values.append(float(token))
        except ValueError:
            raise ParseError(f"{source}:{line_number}: distance '{token}' is not a number")
    return values


def parse_distance_lines(lines: Iterable[str], row_prefix: str = "R", column_prefix: str = "S",
                         source: str = "<input>") -> DistanceMatrix:
    """
    Parse table lines into a DistanceMatrix.

    Args:
        lines: Lines of the table, header first
        row_prefix: Header prefix marking row items
        column_prefix: Header prefix marking column items
        source: Name used in error messages

    Returns:
        DistanceMatrix holding only rows that have a data line

    Raises:
        ParseError: On a malformed table
        CapacityError: If there are more column items than MAX_COLUMNS
    """
    line_iter = iter(lines)
    header = None
    for line in line_iter:
        header = tokenize_line(line)
        break
    if header is None:
        raise ParseError(f"{source}: file is empty, expected a header line")

    row_labels, column_labels, column_positions = parse_header(header, row_prefix, column_prefix)
    if not row_labels:
        raise ParseError(f"{source}: header has no row items (prefix '{row_prefix}')")
    if not column_labels:
        raise ParseError(f"{source}: header has no column items (prefix '{column_prefix}')")
    if len(column_labels) > MAX_COLUMNS:
        raise CapacityError(
            f"There are {len(column_labels)} column items, but only {MAX_COLUMNS} can be indexed"
        )

    known_rows = set(row_labels)
    needed = column_positions[-1] + 1
    rows = {}

    for line_number, line in enumerate(line_iter, start=2):
        tokens = tokenize_line(line)
        if not tokens:
            continue
        label = tokens[0]
        if not label.startswith(row_prefix) or label not in known_rows:
            continue
        if label in rows:
            raise ParseError(f"{source}:{line_number}: duplicate data line for row '{label}'")

        values = _parse_values(tokens[1:], line_number, source)
        if len(values) < needed:
            raise ParseError(
                f"{source}:{line_number}: row '{label}' has {len(values)} values, "
                f"expected at least {needed}"
            )
        rows[label] = [values[position] for position in column_positions]

    # Rows named in the header but never given a data line are dropped
    kept_labels = [label for label in row_labels if label in rows]
    if not kept_labels:
        raise ParseError(f"{source}: no data lines for any row item")

    values = np.array([rows[label] for label in kept_labels], dtype=np.float64)
    return DistanceMatrix.from_labels(kept_labels, column_labels, values)


def load_distance_matrix(path: str, row_prefix: str = "R", column_prefix: str = "S") -> DistanceMatrix:
    """
    Read a distance table file.

    Raises:
        InputReadError: If the file cannot be opened or decoded
        ParseError, CapacityError: As parse_distance_lines
    """
    try:
        with open(path, 'r', encoding='utf-8', newline='') as f:
            return parse_distance_lines(f, row_prefix, column_prefix, source=str(path))
    except (OSError, UnicodeDecodeError) as e:
        raise InputReadError(f"Failed to read {path}: {e}")
