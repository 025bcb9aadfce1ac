# optimize_assignment.py
"""
Minimum-distance assignment between R and S items

Reads a table of distances between row items (R...) and column items
(S...), for example cophenetic distances between the leaves of two trees,
and finds the one-to-one assignment of rows to columns with the smallest
total distance using best-first branch-and-bound search. Each row only
considers its K closest columns; with K at least the number of columns
the result is the exact optimum.

Usage:
    # Default matrix file (cophenetic_pairs_TT) and settings
    python optimize_assignment.py

    # Explicit file and candidate width
    python optimize_assignment.py distances.txt --candidates 20

    # With configuration file, validation and detailed output
    python optimize_assignment.py distances.txt --config config.yaml --validate --verbose

"""

import argparse
import os
import sys
from typing import List, Optional

from config import Config, load_config, validate_config, print_config_summary, PROGRESS_MODES
from display import (print_search_header, print_search_space_info, print_search_summary,
                     print_assignment_report, make_progress_reporter, save_assignment_to_csv)
from errors import AssignmentError
from matrix_io import load_distance_matrix
from search import solve_assignment
from validation import run_validation_suite

DEFAULT_CONFIG_PATH = "config.yaml"

#-----------------------------------------------------------------------------
# Assignment run
#-----------------------------------------------------------------------------
def run_assignment(config: Config, input_path: str) -> None:
    """
    Load the matrix, search, and print the assignment.

    Args:
        config: Configuration object
        input_path: Matrix file to read

    Raises:
        AssignmentError: On any fatal input or search outcome
    """
    verbose = config.visualization.verbose_output

    if verbose:
        print_search_header(input_path)
        print_config_summary(config)

    matrix = load_distance_matrix(input_path, config.input.row_prefix, config.input.column_prefix)

    if verbose:
        print_search_space_info(matrix, config.search.candidate_width)
        print()

    reporter = make_progress_reporter(config.visualization.progress, matrix.n_rows)
    try:
        assignment, result = solve_assignment(matrix, config, on_depth=reporter)
    finally:
        if reporter is not None:
            reporter.close()

    print_assignment_report(assignment)

    if config.output.save_csv:
        csv_path = save_assignment_to_csv(assignment, config, input_path)
        print(f"\nResults saved to: {csv_path}")

    if verbose:
        print_search_summary(result.stats)

#-----------------------------------------------------------------------------
# Command-line interface
#-----------------------------------------------------------------------------
def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Find the minimum-total-distance assignment of R items to S items.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default matrix file
  python optimize_assignment.py

  # Wider candidate lists
  python optimize_assignment.py distances.txt -k 25

  # Stop after five minutes, with a progress bar
  python optimize_assignment.py distances.txt --time-limit 300 --progress bar
        """
    )

    parser.add_argument('input_file', nargs='?', default=None,
                       help='Distance matrix file (default: input.matrix_file from config, '
                            'cophenetic_pairs_TT)')

    # Basic options
    parser.add_argument('--config', type=str, default=None,
                       help=f'Path to configuration file (default: {DEFAULT_CONFIG_PATH} if present)')
    parser.add_argument('--verbose', action='store_true',
                       help='Show configuration, search space and search statistics')

    # Search options
    parser.add_argument('-k', '--candidates', type=int, default=None,
                       help='Candidate columns kept per row (default: 10)')
    parser.add_argument('--time-limit', type=float, default=None,
                       help='Time limit in seconds (default: unlimited)')
    parser.add_argument('--exact-duplicates', action='store_true',
                       help='Detect repeated states by exact column sets instead of fingerprints')

    # Output options
    parser.add_argument('--progress', choices=PROGRESS_MODES, default=None,
                       help='Progress display (default: lines)')
    parser.add_argument('--save-csv', action='store_true',
                       help='Save the assignment to a CSV file in the results folder')

    # Validation options
    parser.add_argument('--validate', action='store_true',
                       help='Run validation suite before searching')

    return parser.parse_args(argv)


def build_config(args) -> Config:
    """Load configuration and apply command-line overrides."""
    config_path = args.config
    if config_path is None and os.path.exists(DEFAULT_CONFIG_PATH):
        config_path = DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    if args.candidates is not None:
        config.search.candidate_width = args.candidates
    if args.time_limit is not None:
        config.search.time_limit = args.time_limit
    if args.exact_duplicates:
        config.search.exact_duplicate_check = True
    if args.progress is not None:
        config.visualization.progress = args.progress
    if args.save_csv:
        config.output.save_csv = True
    if args.verbose:
        config.visualization.verbose_output = True

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit status."""
    args = parse_arguments(argv)

    try:
        config = build_config(args)
        # Overrides bypass load_config, so check them again
        validate_config(config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.validate:
        print("Running validation suite...")
        if not run_validation_suite(config, quick=True):
            print("Validation failed. Please fix issues before searching.", file=sys.stderr)
            return 1
        print("Validation passed!\n")

    input_path = args.input_file or config.input.matrix_file

    try:
        run_assignment(config, input_path)
    except AssignmentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    return 0


if __name__ == "__main__":
    sys.exit(main())
