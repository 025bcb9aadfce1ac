import itertools

import numpy as np
import pytest

from candidates import build_candidate_table
from config import Config
from errors import DataError, NoSolutionError, SearchTimeoutError
from matrix_io import DistanceMatrix
from search import (COMPLETE, EXHAUSTED, TIMEOUT, LowerBoundCalculator, StateFingerprinter,
                    best_first_search, build_assignment, element_fingerprints, set_fingerprint,
                    solve_assignment)
from validation import brute_force_assignment, random_matrix

MASK64 = (1 << 64) - 1


def reference_element_hash(index):
    h = 0xcbf29ce484222325
    h = ((h ^ (index & 0xFF)) * 0x100000001b3) & MASK64
    h = ((h ^ (index >> 8)) * 0x100000001b3) & MASK64
    return h


def scenario_matrix():
    return DistanceMatrix.from_labels(["R1", "R2"], ["S1", "S2"], [[1.0, 4.0], [3.0, 2.0]])


def path_total(matrix, path):
    return float(sum(matrix.values[row, int(column)] for row, column in enumerate(path)))

#-----------------------------------------------------------------------------
# Fingerprints
#-----------------------------------------------------------------------------
@pytest.mark.parametrize("index", [0, 1, 7, 255, 256, 1000, 65534])
def test_element_fingerprint_matches_fnv1a(index):
    assert int(element_fingerprints([index])[0]) == reference_element_hash(index)


def test_fingerprint_of_empty_set_is_zero():
    assert set_fingerprint([]) == 0


def test_fingerprint_is_permutation_invariant():
    rng = np.random.default_rng(123)
    columns = rng.choice(5000, size=25, replace=False)
    reference = set_fingerprint(columns)
    for _ in range(50):
        assert set_fingerprint(rng.permutation(columns)) == reference


def test_incremental_fingerprints_match_full_recomputation():
    fingerprinter = StateFingerprinter(300)
    fingerprint = 0
    for column in [5, 299, 17]:
        fingerprint = fingerprinter.extend(fingerprint, column)
    assert fingerprint == set_fingerprint([5, 299, 17])
    assert fingerprinter.replace(fingerprint, 299, 42) == set_fingerprint([5, 17, 42])

#-----------------------------------------------------------------------------
# Lower bounds
#-----------------------------------------------------------------------------
def test_lower_bound_calculator():
    matrix = DistanceMatrix.from_labels(
        ["R1", "R2", "R3"], ["S1", "S2", "S3"],
        [[1.0, 4.0, 6.0],
         [3.0, 2.0, 5.0],
         [2.0, 2.5, 7.0]],
    )
    bounds = LowerBoundCalculator(build_candidate_table(matrix, 3))
    assert bounds.root_bound() == pytest.approx(5.0)
    assert bounds.bound([]) == pytest.approx(5.0)
    assert bounds.bound([1]) == pytest.approx(4.0 + 2.0 + 2.0)
    assert bounds.bound([0, 1, 2]) == pytest.approx(10.0)
    assert bounds.child_delta(0, 1) == pytest.approx(3.0)
    assert bounds.sibling_delta(2, 0, 1) == pytest.approx(0.5)

#-----------------------------------------------------------------------------
# Best-first search
#-----------------------------------------------------------------------------
def test_two_by_two_scenario():
    matrix = scenario_matrix()
    result = best_first_search(build_candidate_table(matrix, 10))
    assert result.status == COMPLETE
    assert result.path.tolist() == [0, 1]
    assert result.bound == pytest.approx(3.0)


@pytest.mark.parametrize("exact", [False, True])
def test_exhaustive_search_matches_brute_force(exact):
    rng = np.random.default_rng(2024)
    for i in range(120):
        n_rows = int(rng.integers(1, 5))
        n_columns = n_rows + int(rng.integers(0, 3))
        matrix = random_matrix(rng, n_rows, n_columns, integer=(i % 2 == 0))
        expected, _ = brute_force_assignment(matrix.values)

        result = best_first_search(build_candidate_table(matrix, n_columns), exact_duplicate_check=exact)
        assert result.status == COMPLETE
        assert path_total(matrix, result.path) == pytest.approx(expected)


def test_restricted_search_returns_injective_complete_assignment():
    rng = np.random.default_rng(5)
    for _ in range(20):
        matrix = random_matrix(rng, 8, 12)
        result = best_first_search(build_candidate_table(matrix, 4))
        assert result.status == COMPLETE
        path = result.path.tolist()
        assert len(path) == matrix.n_rows
        assert len(set(path)) == len(path)
        assert result.bound == pytest.approx(path_total(matrix, path))


def test_popped_bounds_never_decrease():
    rng = np.random.default_rng(11)
    for i in range(15):
        matrix = random_matrix(rng, 7, 9, integer=(i % 3 == 0))
        result = best_first_search(build_candidate_table(matrix, 3), record_trace=True)
        trace = result.bound_trace
        assert trace
        assert all(b >= a for a, b in zip(trace, trace[1:]))


def test_search_is_deterministic():
    rng = np.random.default_rng(3)
    matrix = random_matrix(rng, 9, 11, integer=True)
    table = build_candidate_table(matrix, 5)
    first = best_first_search(table)
    for _ in range(3):
        again = best_first_search(table)
        assert again.status == first.status
        assert again.path.tolist() == first.path.tolist()
        assert again.stats.nodes_popped == first.stats.nodes_popped


def test_progress_callback_reports_each_new_depth():
    rng = np.random.default_rng(0)
    matrix = random_matrix(rng, 5, 6)
    depths = []
    result = best_first_search(build_candidate_table(matrix, 6),
                               on_depth=lambda depth, total: depths.append((depth, total)))
    assert result.status == COMPLETE
    assert depths == [(d, 5) for d in range(1, 5)]


def test_more_rows_than_columns_is_exhausted():
    matrix = DistanceMatrix.from_labels(["R1", "R2", "R3"], ["S1", "S2"], np.ones((3, 2)))
    result = best_first_search(build_candidate_table(matrix, 10))
    assert result.status == EXHAUSTED
    assert result.path is None
    with pytest.raises(NoSolutionError):
        result.raise_for_status()


def test_colliding_candidate_lists_are_exhausted():
    # Rows 1-3 only keep S1 and S2, so they cannot all be distinct
    matrix = DistanceMatrix.from_labels(
        ["R1", "R2", "R3", "R4"], ["S1", "S2", "S3", "S4"],
        [[0, 0, 9, 9],
         [0, 0, 9, 9],
         [0, 0, 9, 9],
         [9, 9, 0, 0]],
    )
    result = best_first_search(build_candidate_table(matrix, 2))
    assert result.status == EXHAUSTED
    assert result.stats.nodes_popped > 0

    widened = best_first_search(build_candidate_table(matrix, 4))
    assert widened.status == COMPLETE
    assert path_total(matrix, widened.path) == pytest.approx(9.0)


def test_time_limit_stops_search():
    ticks = itertools.count(0.0, 1.0)
    matrix = random_matrix(np.random.default_rng(1), 4, 4)
    result = best_first_search(build_candidate_table(matrix, 4), time_limit=0.5,
                               clock=lambda: next(ticks))
    assert result.status == TIMEOUT
    assert result.stats.nodes_popped == 0
    with pytest.raises(SearchTimeoutError):
        result.raise_for_status()


def test_stats_are_counted():
    matrix = random_matrix(np.random.default_rng(9), 6, 6, integer=True)
    result = best_first_search(build_candidate_table(matrix, 6))
    stats = result.stats
    assert stats.nodes_popped >= matrix.n_rows + 1
    assert stats.nodes_pushed >= stats.nodes_popped
    assert stats.max_depth == matrix.n_rows - 1
    assert stats.max_queue_size >= 1

#-----------------------------------------------------------------------------
# Assignments
#-----------------------------------------------------------------------------
def test_solve_assignment_labels_pairs(quiet_config):
    assignment, result = solve_assignment(scenario_matrix(), quiet_config)
    assert result.solved
    assert [(p.row_label, p.column_label, p.distance) for p in assignment.pairs] == [
        ("R1", "S1", 1.0), ("R2", "S2", 2.0)]
    assert assignment.total == 3.0


def test_solve_assignment_total_is_exact_sum(quiet_config):
    matrix = random_matrix(np.random.default_rng(77), 6, 8)
    assignment, result = solve_assignment(matrix, quiet_config)
    expected = sum(matrix.values[row, int(col)] for row, col in enumerate(result.path))
    assert round(assignment.total, 6) == round(float(expected), 6)


def test_solve_assignment_raises_on_no_solution():
    config = Config()
    matrix = DistanceMatrix.from_labels(["R1", "R2"], ["S1"], [[1.0], [2.0]])
    with pytest.raises(NoSolutionError):
        solve_assignment(matrix, config)


def test_solve_assignment_raises_on_nan():
    matrix = DistanceMatrix.from_labels(["R1"], ["S1", "S2"], [[1.0, np.nan]])
    with pytest.raises(DataError):
        solve_assignment(matrix, Config())


def test_build_assignment_rejects_reused_column():
    with pytest.raises(ValueError):
        build_assignment(scenario_matrix(), [0, 0])
