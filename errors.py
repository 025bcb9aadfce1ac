# errors.py
"""
Error taxonomy for the assignment tool.

Every error carries the process exit code the command-line driver uses
when it aborts on it. Components raise these; only the driver turns them
into a message and an exit status.
"""


class AssignmentError(Exception):
    """Base class for all fatal assignment errors."""
    exit_code = 1


class InputReadError(AssignmentError):
    """The input matrix file cannot be opened or read."""
    exit_code = 3


class ParseError(AssignmentError, ValueError):
    """The input matrix file is malformed."""
    exit_code = 4


class CapacityError(AssignmentError):
    """More column items than the path index type can address."""
    exit_code = 5


class DataError(AssignmentError, ValueError):
    """A distance cannot be ordered (NaN)."""
    exit_code = 6


class NoSolutionError(AssignmentError):
    """The search queue emptied without reaching a complete assignment."""
    exit_code = 7


class SearchTimeoutError(AssignmentError):
    """The search deadline passed before a complete assignment was popped."""
    exit_code = 8
