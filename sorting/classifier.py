"""Classification of numbered PDF files in a source directory.

`scan` walks the immediate entries of a directory and yields a
`CandidateFile` for each entry whose name is a plain base-10 number followed
by the PDF suffix. Two validation modes are supported:

- ``content``: the file must start with the ``%PDF`` magic bytes.
- ``threshold``: the number must be greater than a configured minimum. This
  skips opening every file, which matters on slow network shares.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Iterator, Optional

from sorting.errors import ScanError

PDF_MAGIC = b"%PDF"
DEFAULT_SUFFIX = ".pdf"
MODE_CONTENT = "content"
MODE_THRESHOLD = "threshold"
MODES = (MODE_CONTENT, MODE_THRESHOLD)

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class CandidateFile:
    name: str
    number: int
    source_path: str


def parse_number(name: str, suffix: str = DEFAULT_SUFFIX) -> Optional[int]:
    """Return the number encoded in `name`, or None if it is not ``<digits><suffix>``."""
    if not name.lower().endswith(suffix.lower()):
        return None
    stem = name[: len(name) - len(suffix)]
    if not _DIGITS.fullmatch(stem):
        return None
    return int(stem)


def is_pdf(path: str) -> bool:
    try:
        with open(path, "rb") as f:
            return f.read(len(PDF_MAGIC)) == PDF_MAGIC
    except OSError:
        return False


def _accepts(path: str, number: int, mode: str, min_value: int) -> bool:
    if mode == MODE_THRESHOLD:
        return number > min_value
    return is_pdf(path)


def classify_path(
    path: str,
    mode: str = MODE_CONTENT,
    min_value: int = 0,
    suffix: str = DEFAULT_SUFFIX,
) -> Optional[CandidateFile]:
    """Classify a single file; used by the folder watcher."""
    if mode not in MODES:
        raise ValueError(f"unknown mode {mode!r}")
    if not os.path.isfile(path):
        return None
    name = os.path.basename(path)
    number = parse_number(name, suffix)
    if number is None or not _accepts(path, number, mode, min_value):
        return None
    return CandidateFile(name=name, number=number, source_path=path)


def scan(
    directory: str,
    mode: str = MODE_CONTENT,
    min_value: int = 0,
    suffix: str = DEFAULT_SUFFIX,
) -> Iterator[CandidateFile]:
    """Yield candidate files found directly inside `directory`.

    The listing is read in full before anything is yielded, so an unreadable
    directory raises ScanError without producing a partial result.
    """
    if mode not in MODES:
        raise ValueError(f"unknown mode {mode!r}")
    try:
        with os.scandir(directory) as it:
            entries = [e for e in it if e.is_file(follow_symlinks=False)]
    except OSError as exc:
        raise ScanError(f"Cannot read source directory {directory}: {exc}") from exc

    for entry in sorted(entries, key=lambda e: e.name):
        number = parse_number(entry.name, suffix)
        if number is None:
            continue
        if not _accepts(entry.path, number, mode, min_value):
            continue
        yield CandidateFile(name=entry.name, number=number, source_path=entry.path)
