"""Split feed items into fixed-size batches for dispatch."""

from typing import Sequence, TypeVar

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 100


def make_batches(items: Sequence[T], batch_size: int = DEFAULT_BATCH_SIZE) -> list[list[T]]:
    """Group items into batches of up to batch_size, preserving order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]
