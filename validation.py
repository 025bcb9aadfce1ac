# validation.py
"""
Validation suite for the assignment search.

This module checks the search against its guarantees on random small
instances:
- Fingerprint permutation invariance
- Lower bound admissibility
- Non-decreasing pop order
- Optimality against brute-force enumeration
- Deterministic results
"""

import numpy as np
import time
from itertools import permutations
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass

from candidates import build_candidate_table
from config import Config
from matrix_io import DistanceMatrix
from search import (COMPLETE, LowerBoundCalculator, best_first_search,
                    set_fingerprint)

#-----------------------------------------------------------------------------
# Validation result classes
#-----------------------------------------------------------------------------
@dataclass
class ValidationResult:
    """Result of a single validation test."""
    test_name: str
    passed: bool
    message: str
    details: Optional[Dict] = None

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"{status}: {self.test_name} - {self.message}"


@dataclass
class ValidationSuite:
    """Results from a complete validation suite."""
    results: List[ValidationResult]

    @property
    def all_passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.results if result.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.passed)

    def print_summary(self):
        """Print validation summary."""
        print(f"\nValidation Summary: {self.passed_count}/{len(self.results)} tests passed")

        for result in self.results:
            print(f"  {result}")
            if result.details and not result.passed:
                for key, value in result.details.items():
                    print(f"    {key}: {value}")

        if self.all_passed:
            print("\nAll validation tests passed!")
        else:
            print(f"\n{self.failed_count} test(s) failed - review results above")

#-----------------------------------------------------------------------------
# Reference helpers
#-----------------------------------------------------------------------------
def random_matrix(rng: np.random.Generator, n_rows: int, n_columns: int,
                  integer: bool = False) -> DistanceMatrix:
    """Random distance matrix; integer values make ties likely."""
    if integer:
        values = rng.integers(0, 5, size=(n_rows, n_columns)).astype(np.float64)
    else:
        values = rng.uniform(0.0, 10.0, size=(n_rows, n_columns))
    return DistanceMatrix.from_labels(
        [f"R{i + 1}" for i in range(n_rows)],
        [f"S{j + 1}" for j in range(n_columns)],
        values,
    )


def brute_force_assignment(values: np.ndarray) -> Tuple[float, Tuple[int, ...]]:
    """Minimum total over all injective row->column maps (small inputs only)."""
    n_rows, n_columns = values.shape
    best_total = float('inf')
    best_path = None
    rows = np.arange(n_rows)
    for path in permutations(range(n_columns), n_rows):
        total = float(values[rows, list(path)].sum())
        if total < best_total:
            best_total = total
            best_path = path
    return best_total, best_path


def _search_total(matrix: DistanceMatrix, width: int, **kwargs):
    table = build_candidate_table(matrix, width)
    result = best_first_search(table, **kwargs)
    if result.status != COMPLETE:
        return None, result
    columns = [int(c) for c in result.path]
    return float(matrix.values[np.arange(matrix.n_rows), columns].sum()), result

#-----------------------------------------------------------------------------
# Core validation functions
#-----------------------------------------------------------------------------
def test_fingerprint_invariance(n_tests: int = 100, seed: int = 42) -> ValidationResult:
    """
    Test that fingerprints ignore element order.

    Args:
        n_tests: Number of random column sets to permute
        seed: Random seed

    Returns:
        ValidationResult with test outcome
    """
    rng = np.random.default_rng(seed)
    mismatches = 0
    for _ in range(n_tests):
        size = int(rng.integers(0, 12))
        columns = rng.choice(2000, size=size, replace=False)
        reference = set_fingerprint(columns)
        for _ in range(5):
            if set_fingerprint(rng.permutation(columns)) != reference:
                mismatches += 1

    passed = mismatches == 0
    message = f"Permuted {n_tests} column sets 5 times each, {mismatches} mismatches"
    return ValidationResult("Fingerprint Invariance", passed, message, {"mismatches": mismatches})


def test_lower_bound_admissibility(n_tests: int = 50, seed: int = 42) -> ValidationResult:
    """
    Test that the bound of a random partial path never exceeds its best completion.
    """
    rng = np.random.default_rng(seed)
    violations = 0
    for _ in range(n_tests):
        n_rows = int(rng.integers(2, 5))
        matrix = random_matrix(rng, n_rows, n_rows + int(rng.integers(0, 2)))
        table = build_candidate_table(matrix, matrix.n_columns)
        bounds = LowerBoundCalculator(table)

        depth = int(rng.integers(0, n_rows + 1))
        prefix = [int(c) for c in rng.choice(matrix.n_columns, size=depth, replace=False)]
        free = [c for c in range(matrix.n_columns) if c not in prefix]

        best = float('inf')
        for tail in permutations(free, n_rows - depth):
            path = prefix + list(tail)
            best = min(best, float(matrix.values[np.arange(n_rows), path].sum()))
        if bounds.bound(prefix) > best + 1e-9:
            violations += 1

    passed = violations == 0
    message = f"Tested {n_tests} random partial paths, {violations} bounds above best completion"
    return ValidationResult("Lower Bound Admissibility", passed, message, {"violations": violations})


def test_pop_order(n_tests: int = 30, seed: int = 42) -> ValidationResult:
    """Test that popped bounds never decrease."""
    rng = np.random.default_rng(seed)
    violations = 0
    for _ in range(n_tests):
        n_rows = int(rng.integers(2, 7))
        matrix = random_matrix(rng, n_rows, n_rows + int(rng.integers(0, 3)), integer=bool(rng.integers(0, 2)))
        _, result = _search_total(matrix, 3, record_trace=True)
        trace = result.bound_trace
        violations += sum(1 for a, b in zip(trace, trace[1:]) if b < a - 1e-9)

    passed = violations == 0
    message = f"Traced {n_tests} searches, {violations} decreasing pops"
    return ValidationResult("Pop Order", passed, message, {"violations": violations})


def test_brute_force_optimality(n_tests: int = 100, seed: int = 42) -> ValidationResult:
    """
    Test that an untruncated search finds the brute-force optimum.
    """
    rng = np.random.default_rng(seed)
    mismatches = []
    start_time = time.time()
    for i in range(n_tests):
        n_rows = int(rng.integers(1, 5))
        matrix = random_matrix(rng, n_rows, n_rows + int(rng.integers(0, 3)), integer=(i % 2 == 0))
        expected, _ = brute_force_assignment(matrix.values)
        for exact in (False, True):
            total, _ = _search_total(matrix, matrix.n_columns, exact_duplicate_check=exact)
            if total is None or abs(total - expected) > 1e-9:
                mismatches.append((i, exact, total, expected))

    passed = not mismatches
    message = (f"Compared {n_tests} random instances in {time.time() - start_time:.2f}s, "
               f"{len(mismatches)} mismatches")
    return ValidationResult("Brute-Force Optimality", passed, message,
                            {"first_mismatches": mismatches[:5]})


def test_determinism(config: Config, n_tests: int = 10, seed: int = 42) -> ValidationResult:
    """Test that repeated searches return the same path."""
    rng = np.random.default_rng(seed)
    differences = 0
    for _ in range(n_tests):
        matrix = random_matrix(rng, 6, 8, integer=True)
        width = config.search.candidate_width
        _, first = _search_total(matrix, width)
        _, second = _search_total(matrix, width)
        first_path = None if first.path is None else first.path.tolist()
        second_path = None if second.path is None else second.path.tolist()
        if first.status != second.status or first_path != second_path:
            differences += 1

    passed = differences == 0
    message = f"Repeated {n_tests} searches with K={config.search.candidate_width}, {differences} differences"
    return ValidationResult("Determinism", passed, message, {"differences": differences})

#-----------------------------------------------------------------------------
# Main validation runner
#-----------------------------------------------------------------------------
def run_validation_suite(config: Config, quick: bool = False) -> bool:
    """
    Run comprehensive validation suite.

    Args:
        config: Configuration to use for validation
        quick: If True, run faster but less comprehensive tests

    Returns:
        True if all tests passed, False otherwise
    """
    scale = 0.3 if quick else 1.0

    results = [
        test_fingerprint_invariance(int(100 * scale)),
        test_lower_bound_admissibility(int(50 * scale)),
        test_pop_order(int(30 * scale)),
        test_brute_force_optimality(int(100 * scale)),
        test_determinism(config, int(10 * scale)),
    ]

    suite = ValidationSuite(results)
    suite.print_summary()

    return suite.all_passed
