# display.py
"""
Display and output formatting for assignment searches.
"""

import math
import os
from datetime import datetime
from typing import List, Optional
import pandas as pd
from tqdm import tqdm

from config import Config
from matrix_io import DistanceMatrix
from search import Assignment, SearchStats

#-----------------------------------------------------------------------------
# Progress reporting
#-----------------------------------------------------------------------------
def format_depth_progress(depth: int, total: int) -> str:
    """Progress line for a newly reached search depth."""
    width = len(str(total))
    percent = (100 * depth) // total if total else 100
    return f"Explored depth: {percent:>3}% ({depth:>{width}}/{total})"


class DepthProgressPrinter:
    """Print one progress line per new maximum depth."""

    def __call__(self, depth: int, total: int) -> None:
        print(format_depth_progress(depth, total), flush=True)

    def close(self) -> None:
        pass


class DepthProgressBar:
    """tqdm bar advanced to each new maximum depth."""

    def __init__(self, total: int):
        self.pbar = tqdm(total=total, desc="Explored depth", unit=" rows")

    def __call__(self, depth: int, total: int) -> None:
        self.pbar.update(depth - self.pbar.n)

    def close(self) -> None:
        self.pbar.close()


def make_progress_reporter(mode: str, total: int):
    """Progress callback for the configured display mode, or None."""
    if mode == "lines":
        return DepthProgressPrinter()
    if mode == "bar":
        return DepthProgressBar(total)
    return None

#-----------------------------------------------------------------------------
# Headers and summaries
#-----------------------------------------------------------------------------
def print_search_header(input_path: str) -> None:
    """Print header for a search run."""
    print(f"\n" + "="*60)
    print("MINIMUM-DISTANCE ASSIGNMENT")
    print("="*60)
    print(f"  Input: {input_path}")


def log10_arrangements(n_rows: int, n_columns: int) -> Optional[float]:
    """log10 of the number of injective row->column maps, None if there are none."""
    if n_rows > n_columns:
        return None
    return (math.lgamma(n_columns + 1) - math.lgamma(n_columns - n_rows + 1)) / math.log(10)


def print_search_space_info(matrix: DistanceMatrix, candidate_width: int) -> None:
    """Print information about the search space size."""
    print("\nSearch Space Analysis:")
    print(f"  Row items: {matrix.n_rows}")
    print(f"  Column items: {matrix.n_columns}")

    exponent = log10_arrangements(matrix.n_rows, matrix.n_columns)
    if exponent is None:
        print(f"  No complete assignment possible: more rows than columns")
    elif exponent < 15:
        print(f"  Complete assignments: {math.perm(matrix.n_columns, matrix.n_rows):,}")
    else:
        print(f"  Complete assignments: ~10^{exponent:.1f}")

    if candidate_width >= matrix.n_columns:
        print(f"  Candidates per row: all {matrix.n_columns} (exhaustive)")
    else:
        print(f"  Candidates per row: {candidate_width} of {matrix.n_columns} (restricted)")


def print_search_summary(stats: SearchStats) -> None:
    """Print search statistics."""
    print(f"\nSearch Summary:")
    print(f"  Nodes popped: {stats.nodes_popped:,}")
    print(f"  Nodes pushed: {stats.nodes_pushed:,}")
    print(f"  Duplicate states discarded: {stats.duplicates_discarded:,}")
    print(f"  Largest queue: {stats.max_queue_size:,}")
    print(f"  Total time: {stats.elapsed_time:.2f}s")
    if stats.elapsed_time > 0:
        print(f"  Rate: {stats.nodes_popped/stats.elapsed_time:.0f} nodes/sec")

#-----------------------------------------------------------------------------
# Results display
#-----------------------------------------------------------------------------
def format_assignment_report(assignment: Assignment) -> List[str]:
    """
    Lines of the final report.

    One line per pair with labels padded to the widest label of their set,
    a dashed separator, and the total right-aligned beneath the pairs.
    """
    row_width = assignment.row_width
    column_width = assignment.column_width

    lines = [
        f"{pair.row_label:<{row_width}} -> {pair.column_label:<{column_width}} = {pair.distance:.6f}"
        for pair in assignment.pairs
    ]
    lines.append("-" * (row_width + column_width + 15))
    total = f"{assignment.total:.6f}"
    lines.append(f"Total distance: {total:>{max(row_width + column_width - 1, 1)}}")
    return lines


def print_assignment_report(assignment: Assignment) -> None:
    for line in format_assignment_report(assignment):
        print(line)

#-----------------------------------------------------------------------------
# CSV output
#-----------------------------------------------------------------------------
def save_assignment_to_csv(assignment: Assignment, config: Config, input_path: str) -> str:
    """
    Save the assignment to a timestamped CSV file.

    Args:
        assignment: Solved assignment
        config: Configuration object (results folder)
        input_path: Matrix file the assignment came from

    Returns:
        Path to saved CSV file
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    input_name = os.path.splitext(os.path.basename(input_path))[0] or "matrix"
    filename = f"assignment_{input_name}_{timestamp}.csv"

    os.makedirs(config.output.results_folder, exist_ok=True)
    output_path = os.path.join(config.output.results_folder, filename)

    df = pd.DataFrame(
        [(pair.row_label, pair.column_label, pair.distance) for pair in assignment.pairs],
        columns=['row', 'column', 'distance'],
    )
    df.to_csv(output_path, index=False, float_format="%.6f")

    return output_path
