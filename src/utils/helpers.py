"""
Helper Utilities Module.

Small generic functions shared across the parser.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - validate_file_exists: Check a path points to a regular file
    - clamp: Bound a value to an interval
    - mean: Average that treats an empty sequence as zero
    - split_lines: Split text into stripped lines
"""

from pathlib import Path
from typing import Iterable, List, Sequence, Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("outputs/reports")
        PosixPath('outputs/reports')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def validate_file_exists(filepath: Union[str, Path]) -> bool:
    """
    Check if a file exists and is a regular file.

    Args:
        filepath: Path to check.

    Returns:
        True if file exists and is a regular file.
    """
    path = Path(filepath)
    return path.exists() and path.is_file()


def clamp(value: float, bounds: Sequence[float]) -> float:
    """
    Bound ``value`` to the closed interval ``bounds``.

    Example:
        >>> clamp(1.2, (0.1, 0.99))
        0.99
    """
    low, high = bounds
    return max(low, min(high, value))


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean; 0.0 for an empty input."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def split_lines(text: str) -> List[str]:
    """Split text on newlines and strip each line. Empty lines are kept."""
    if not text:
        return []
    return [line.strip() for line in text.split('\n')]
