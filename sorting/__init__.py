"""Sorting package for Admin Sorter.

Keep classification, bucket naming and move logic here so the CLI in
``admin_sorter`` stays small and testable.
"""

__all__ = ["buckets", "classifier", "config", "errors", "file_mover"]
