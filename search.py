# search.py
"""
Search algorithms for minimum-distance assignment.

Consolidates all search logic including:
- Lower bound calculations
- State fingerprints for duplicate suppression
- Candidate scanning
- Best-first branch and bound over partial assignments

A partial assignment is a path of column indices, one per row in row
order. Nodes are popped lowest bound first. Each pop pushes at most two
nodes: the next untried candidate for the last row (a sibling) and the
first free candidate for the next row (a child). Later alternatives are
discovered when those nodes are popped in turn.
"""

import heapq
import math
import time
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple
from numba import jit

from candidates import CandidateTable, build_candidate_table
from config import Config
from errors import NoSolutionError, SearchTimeoutError
from matrix_io import DistanceMatrix, PATH_DTYPE

COMPLETE = "complete"
EXHAUSTED = "exhausted"
TIMEOUT = "timeout"

#-----------------------------------------------------------------------------
# Lower bound calculations
#-----------------------------------------------------------------------------
class LowerBoundCalculator:
    """
    Admissible lower bound for partial assignments.

    bound(path) = sum of assigned distances + sum of row minimums of the
    unassigned rows. The bound ignores that unassigned rows must use
    distinct columns, so it never exceeds the best completion.
    """

    def __init__(self, table: CandidateTable):
        self.table = table
        minimums = table.row_minimums
        # _remaining[d] is the sum of row minimums for rows d..n-1
        self._remaining = np.concatenate((np.cumsum(minimums[::-1])[::-1], [0.0]))

    def root_bound(self) -> float:
        return float(self._remaining[0])

    def remaining_minimum(self, depth: int) -> float:
        return float(self._remaining[depth])

    def bound(self, path) -> float:
        """Recompute the bound of a path from scratch."""
        columns = np.asarray(path, dtype=np.intp)
        depth = len(columns)
        assigned = float(self.table.distances[np.arange(depth), columns].sum()) if depth else 0.0
        return assigned + self.remaining_minimum(depth)

    def child_delta(self, row: int, column: int) -> float:
        """Bound change when row is assigned column instead of its minimum."""
        return float(self.table.distances[row, column] - self.table.row_minimums[row])

    def sibling_delta(self, row: int, old_column: int, new_column: int) -> float:
        """Bound change when row switches from old_column to new_column."""
        return float(self.table.distances[row, new_column] - self.table.distances[row, old_column])

#-----------------------------------------------------------------------------
# State fingerprints
#-----------------------------------------------------------------------------
# FNV-1a, 64-bit
FNV_OFFSET_BASIS = np.uint64(0xcbf29ce484222325)
FNV_PRIME = np.uint64(0x100000001b3)
_BYTE_MASK = np.uint64(0xFF)
_BYTE_SHIFT = np.uint64(8)


def element_fingerprints(indices) -> np.ndarray:
    """
    Hash each column index on its own: FNV-1a over its low then high byte.

    uint64 array arithmetic wraps, which is the FNV multiply.
    """
    idx = np.asarray(indices, dtype=np.uint64).reshape(-1)
    h = np.full(idx.shape, FNV_OFFSET_BASIS, dtype=np.uint64)
    h = (h ^ (idx & _BYTE_MASK)) * FNV_PRIME
    h = (h ^ (idx >> _BYTE_SHIFT)) * FNV_PRIME
    return h


def set_fingerprint(indices) -> int:
    """
    Order-independent 64-bit fingerprint of a multiset of column indices.

    XOR of the element hashes, so any permutation gives the same value.
    Distinct sets can collide; there is no equality check behind it.
    """
    return int(np.bitwise_xor.reduce(element_fingerprints(indices)))


class StateFingerprinter:
    """Precomputed element hashes for incremental fingerprint updates."""

    def __init__(self, n_columns: int):
        self._element = [int(h) for h in element_fingerprints(np.arange(n_columns))]

    def element(self, column: int) -> int:
        return self._element[column]

    def extend(self, fingerprint: int, column: int) -> int:
        return fingerprint ^ self._element[column]

    def replace(self, fingerprint: int, old_column: int, new_column: int) -> int:
        return fingerprint ^ self._element[old_column] ^ self._element[new_column]

#-----------------------------------------------------------------------------
# Candidate scanning
#-----------------------------------------------------------------------------
@jit(nopython=True)
def next_free_candidate_jit(candidates: np.ndarray, start: int,
                            path: np.ndarray, n_used: int) -> int:
    """JIT-compiled scan for the first candidate at or after start not in path[:n_used]."""
    for k in range(start, len(candidates)):
        column = candidates[k]
        taken = False
        for j in range(n_used):
            if path[j] == column:
                taken = True
                break
        if not taken:
            return k
    return -1

#-----------------------------------------------------------------------------
# Search state
#-----------------------------------------------------------------------------
@dataclass
class SearchNode:
    """A partial assignment and its lower bound."""
    bound: float
    path: np.ndarray
    cursor: int        # position of path[-1] in its row's candidate list
    fingerprint: int

    @property
    def depth(self) -> int:
        return len(self.path)


@dataclass
class SearchStats:
    """Counters for one search run."""
    nodes_popped: int = 0
    nodes_pushed: int = 0
    duplicates_discarded: int = 0
    max_depth: int = 0
    max_queue_size: int = 0
    elapsed_time: float = 0.0


class SearchState:
    """
    Priority queue and visited set owned by one search run.

    Heap entries order by bound, then deeper paths first, then the column
    sequence, then insertion order, so pops are deterministic.
    """

    def __init__(self, n_columns: int, exact_duplicate_check: bool = False):
        self.heap = []
        self.visited = set()
        self.fingerprinter = StateFingerprinter(n_columns)
        self.exact_duplicate_check = exact_duplicate_check
        self.stats = SearchStats()
        self._counter = 0

    def push(self, node: SearchNode) -> None:
        entry = (node.bound, -node.depth, tuple(node.path.tolist()), self._counter, node)
        heapq.heappush(self.heap, entry)
        self._counter += 1
        self.stats.nodes_pushed += 1
        if len(self.heap) > self.stats.max_queue_size:
            self.stats.max_queue_size = len(self.heap)

    def pop(self) -> SearchNode:
        self.stats.nodes_popped += 1
        return heapq.heappop(self.heap)[-1]

    def key(self, path: np.ndarray, fingerprint: int):
        """Visited-set key for a path's column set."""
        if self.exact_duplicate_check:
            return frozenset(path.tolist())
        return fingerprint

    def seen(self, key) -> bool:
        return key in self.visited

    def mark_visited(self, key) -> bool:
        """Insert key; False if it was already there."""
        if key in self.visited:
            return False
        self.visited.add(key)
        return True


def _push_sibling(state: SearchState, bounds: LowerBoundCalculator,
                  table: CandidateTable, node: SearchNode) -> bool:
    """Push the next untried candidate for the node's last row."""
    row = node.depth - 1
    candidates = table.columns[row]
    old_column = int(node.path[row])

    k = next_free_candidate_jit(candidates, node.cursor + 1, node.path, row)
    while k >= 0:
        column = int(candidates[k])
        fingerprint = state.fingerprinter.replace(node.fingerprint, old_column, column)
        path = node.path.copy()
        path[row] = column
        if not state.seen(state.key(path, fingerprint)):
            bound = node.bound + bounds.sibling_delta(row, old_column, column)
            state.push(SearchNode(bound, path, k, fingerprint))
            return True
        k = next_free_candidate_jit(candidates, k + 1, node.path, row)
    return False


def _push_child(state: SearchState, bounds: LowerBoundCalculator,
                table: CandidateTable, node: SearchNode) -> bool:
    """Push the first free candidate for the next row."""
    row = node.depth
    candidates = table.columns[row]

    k = next_free_candidate_jit(candidates, 0, node.path, row)
    while k >= 0:
        column = int(candidates[k])
        fingerprint = state.fingerprinter.extend(node.fingerprint, column)
        path = np.empty(row + 1, dtype=PATH_DTYPE)
        path[:row] = node.path
        path[row] = column
        if not state.seen(state.key(path, fingerprint)):
            bound = node.bound + bounds.child_delta(row, column)
            state.push(SearchNode(bound, path, k, fingerprint))
            return True
        k = next_free_candidate_jit(candidates, k + 1, node.path, row)
    return False

#-----------------------------------------------------------------------------
# Best-first search
#-----------------------------------------------------------------------------
@dataclass
class SearchResult:
    """Outcome of one search run."""
    status: str
    path: Optional[np.ndarray]
    bound: Optional[float]
    stats: SearchStats
    bound_trace: List[float] = field(default_factory=list)

    @property
    def solved(self) -> bool:
        return self.status == COMPLETE

    def raise_for_status(self) -> None:
        """Raise NoSolutionError or SearchTimeoutError unless complete."""
        if self.status == EXHAUSTED:
            raise NoSolutionError(
                f"No complete assignment exists within the candidate lists "
                f"(search exhausted after {self.stats.nodes_popped:,} nodes, "
                f"deepest path {self.stats.max_depth})"
            )
        if self.status == TIMEOUT:
            raise SearchTimeoutError(
                f"Search time limit reached after {self.stats.elapsed_time:.2f}s and "
                f"{self.stats.nodes_popped:,} nodes (deepest path {self.stats.max_depth})"
            )


def best_first_search(table: CandidateTable, time_limit: Optional[float] = None,
                      exact_duplicate_check: bool = False,
                      on_depth: Optional[Callable[[int, int], None]] = None,
                      record_trace: bool = False,
                      clock: Callable[[], float] = time.perf_counter) -> SearchResult:
    """
    Find the minimum-total-distance assignment within the candidate lists.

    Args:
        table: Candidate lists, row minimums and distances
        time_limit: Seconds before giving up (None for unlimited)
        exact_duplicate_check: Key the visited set by exact column sets
        on_depth: Called with (depth, n_rows) whenever a deeper path is popped
        record_trace: Keep the bound of every popped node
        clock: Monotonic clock in seconds

    Returns:
        SearchResult with status COMPLETE, EXHAUSTED or TIMEOUT
    """
    n_rows = table.n_rows
    bounds = LowerBoundCalculator(table)
    state = SearchState(table.n_columns, exact_duplicate_check)
    stats = state.stats
    trace = []

    start_time = clock()
    deadline = None if time_limit is None else start_time + time_limit

    # Pigeonhole: fewer reachable columns than rows can never complete
    if n_rows and n_rows > np.unique(np.concatenate(table.columns)).size:
        stats.elapsed_time = clock() - start_time
        return SearchResult(EXHAUSTED, None, None, stats, trace)

    state.push(SearchNode(bounds.root_bound(), np.empty(0, dtype=PATH_DTYPE), -1, 0))
    best = None
    status = EXHAUSTED

    while state.heap:
        if deadline is not None and clock() > deadline:
            status = TIMEOUT
            break

        node = state.pop()
        if record_trace:
            trace.append(node.bound)

        depth = node.depth
        if depth >= n_rows:
            best = node
            status = COMPLETE
            break

        if depth > stats.max_depth:
            stats.max_depth = depth
            if on_depth is not None:
                on_depth(depth, n_rows)

        is_new = state.mark_visited(state.key(node.path, node.fingerprint))

        # Later siblings are not covered by the visited state, so they are
        # pushed even from a duplicate
        if depth > 0:
            _push_sibling(state, bounds, table, node)

        if not is_new:
            stats.duplicates_discarded += 1
            continue

        _push_child(state, bounds, table, node)

    stats.elapsed_time = clock() - start_time
    if best is None:
        return SearchResult(status, None, None, stats, trace)
    return SearchResult(status, best.path, best.bound, stats, trace)

#-----------------------------------------------------------------------------
# Assignments
#-----------------------------------------------------------------------------
@dataclass
class AssignedPair:
    row_label: str
    column_label: str
    distance: float


@dataclass
class Assignment:
    """Matched (row, column) pairs in row order and their total distance."""
    pairs: List[AssignedPair]
    total: float

    @property
    def row_width(self) -> int:
        return max((len(p.row_label) for p in self.pairs), default=0)

    @property
    def column_width(self) -> int:
        return max((len(p.column_label) for p in self.pairs), default=0)


def build_assignment(matrix: DistanceMatrix, path) -> Assignment:
    """Turn a complete path into labeled pairs; the total is the exact sum of entries."""
    columns = [int(c) for c in path]
    if len(columns) != matrix.n_rows:
        raise ValueError(f"Path covers {len(columns)} rows, matrix has {matrix.n_rows}")
    if len(set(columns)) != len(columns):
        raise ValueError(f"Path reuses a column: {columns}")

    row_labels = matrix.row_labels
    column_labels = matrix.column_labels
    pairs = [AssignedPair(row_labels[row], column_labels[column], matrix.distance(row, column))
             for row, column in enumerate(columns)]
    total = math.fsum(pair.distance for pair in pairs)
    return Assignment(pairs, total)


def solve_assignment(matrix: DistanceMatrix, config: Config,
                     on_depth: Optional[Callable[[int, int], None]] = None,
                     record_trace: bool = False) -> Tuple[Assignment, SearchResult]:
    """
    Reduce candidates, search, and label the optimal assignment.

    Raises:
        DataError: If the matrix holds NaN distances
        NoSolutionError: If the candidate lists admit no distinct assignment
        SearchTimeoutError: If the configured time limit passes first
    """
    table = build_candidate_table(matrix, config.search.candidate_width)
    result = best_first_search(
        table,
        time_limit=config.search.time_limit,
        exact_duplicate_check=config.search.exact_duplicate_check,
        on_depth=on_depth,
        record_trace=record_trace,
    )
    result.raise_for_status()
    return build_assignment(matrix, result.path), result
