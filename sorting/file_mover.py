"""File moving utilities for Admin Sorter.

`move_file` relocates one file, preferring a hard link and falling back to a
synced byte copy. `move_all` runs `move_file` for a batch of candidates on a
bounded thread pool and collects one `MoveResult` per candidate.
"""
from __future__ import annotations

import os
import shutil
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sorting.buckets import bucket_path
from sorting.classifier import CandidateFile
from sorting.errors import CopyError, DirectoryError, MoveError, PolicyError

LINKED = "linked"
COPIED = "copied"
SAME_FILE = "same_file"
ALREADY_MOVED = "already_moved"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class MoveResult:
    candidate: CandidateFile
    destination: str
    status: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status not in (FAILED, CANCELLED)


def ensure_dir(path: str) -> None:
    try:
        os.makedirs(path, mode=0o777, exist_ok=True)
    except OSError as exc:
        raise DirectoryError(f"Cannot create directory {path}: {exc}") from exc


def ensure_dirs(dest_dir: str, candidates: Iterable[CandidateFile], logger: Optional[object] = None) -> List[str]:
    """Create every bucket directory the candidates need and return them sorted."""
    paths = sorted({bucket_path(dest_dir, c.number) for c in candidates})
    for path in paths:
        existed = os.path.isdir(path)
        ensure_dir(path)
        if logger and not existed:
            logger.info("Created bucket directory: %s", path)
    return paths


def copy_file_contents(src: str, dst: str) -> None:
    """Copy the bytes of `src` into `dst` and sync `dst` to disk.

    `dst` is created or truncated. The copied size is checked against the
    source size.
    """
    with open(src, "rb") as fin, open(dst, "wb") as fout:
        shutil.copyfileobj(fin, fout)
        fout.flush()
        os.fsync(fout.fileno())
        expected = os.fstat(fin.fileno()).st_size
        written = os.fstat(fout.fileno()).st_size
    if written != expected:
        raise CopyError(f"Short copy {src} -> {dst}: {written} of {expected} bytes")


def move_file(src: str, dst: str) -> str:
    """Move `src` to `dst` and return how it was done.

    - Returns ``already_moved`` if `src` is gone and `dst` is a regular file.
    - Returns ``same_file`` if both paths name the same file; nothing is touched.
    - Otherwise hard-links (``linked``) or copies (``copied``), then removes `src`.

    Raises PolicyError if either path exists but is not a regular file.
    """
    try:
        sst = os.lstat(src)
    except FileNotFoundError:
        if os.path.isfile(dst) and not os.path.islink(dst):
            return ALREADY_MOVED
        raise
    if not stat.S_ISREG(sst.st_mode):
        raise PolicyError(f"Non-regular source file {src} ({stat.filemode(sst.st_mode)})")

    try:
        dst_st = os.lstat(dst)
    except FileNotFoundError:
        dst_st = None
    if dst_st is not None:
        if os.path.samestat(sst, dst_st):
            return SAME_FILE
        if not stat.S_ISREG(dst_st.st_mode):
            raise PolicyError(f"Non-regular destination file {dst} ({stat.filemode(dst_st.st_mode)})")

    try:
        os.link(src, dst)
        status = LINKED
    except OSError:
        # cross-device, unsupported, or dst already exists
        copy_file_contents(src, dst)
        status = COPIED

    os.remove(src)
    return status


def _move_candidate(
    candidate: CandidateFile,
    dest_dir: str,
    logger: Optional[object],
    abort: Optional[threading.Event] = None,
) -> MoveResult:
    dst = os.path.join(bucket_path(dest_dir, candidate.number), candidate.name)
    if abort is not None and abort.is_set():
        return MoveResult(candidate, dst, CANCELLED)
    try:
        status = move_file(candidate.source_path, dst)
    except (OSError, PolicyError, CopyError) as exc:
        if abort is not None:
            abort.set()
        if logger:
            logger.error("Failed to move %s -> %s: %s", candidate.source_path, dst, exc)
        return MoveResult(candidate, dst, FAILED, exc)
    if logger:
        logger.info("Moved %s -> %s (%s)", candidate.source_path, dst, status)
    return MoveResult(candidate, dst, status)


def move_all(
    candidates: Iterable[CandidateFile],
    dest_dir: str,
    workers: int = 8,
    fail_fast: bool = False,
    logger: Optional[object] = None,
) -> List[MoveResult]:
    """Move every candidate into its bucket under `dest_dir`.

    Blocks until every submitted move has finished. Results are returned in
    candidate order; failures are reported in the results rather than raised.
    With `fail_fast`, the first failure stops every move that has not started
    yet and raises MoveError once running moves are done.
    """
    candidates = list(candidates)
    abort = threading.Event() if fail_fast else None
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda c: _move_candidate(c, dest_dir, logger, abort), candidates))

    if fail_fast:
        failed = next((r for r in results if r.status == FAILED), None)
        if failed is not None:
            raise MoveError(
                f"Aborting: failed to move {failed.candidate.source_path}: {failed.error}"
            ) from failed.error
    return results
