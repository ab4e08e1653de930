"""Bucket naming for numbered files.

Buckets are contiguous 500-wide ranges starting at 1: ``1-500``,
``501-1000``, ... A number that is an exact multiple of 500 closes its
bucket, so ``500`` lands in ``1-500`` and ``1000`` in ``501-1000``.
"""
from __future__ import annotations

import os
from typing import Tuple

BUCKET_SIZE = 500


def bucket_bounds(number: int) -> Tuple[int, int]:
    """Return the inclusive ``(low, high)`` range holding `number`.

    ``0`` is placed in the first bucket; negative numbers raise ValueError.
    """
    if number < 0:
        raise ValueError(f"bucket number must be non-negative, got {number}")
    if number == 0:
        return 1, BUCKET_SIZE

    n = number
    if n % BUCKET_SIZE == 0:
        n -= 1
    low = (n // BUCKET_SIZE) * BUCKET_SIZE + 1
    return low, low + BUCKET_SIZE - 1


def bucket(number: int) -> str:
    low, high = bucket_bounds(number)
    return f"{low}-{high}"


def bucket_path(dest_dir: str, number: int) -> str:
    return os.path.join(dest_dir, bucket(number))
