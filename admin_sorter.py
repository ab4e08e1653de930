from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from dataclasses import replace
from logging.handlers import RotatingFileHandler
from typing import List, Optional, Sequence

from sorting.buckets import bucket_path
from sorting.classifier import MODE_CONTENT, MODES, classify_path, scan
from sorting.config import CONFIG_FILENAME, DEFAULT_DEST_DIR, SorterConfig, config_exists, load_config, validate
from sorting.errors import SorterError
from sorting.file_mover import FAILED, MoveResult, ensure_dir, ensure_dirs, move_all, move_file

try:
    from watchdog.observers import Observer
    from watchdog.events import FileSystemEventHandler
except ImportError:  # watchdog not available
    print("Required package 'watchdog' is not installed. Install with: python -m pip install watchdog")
    sys.exit(1)


class NewFileHandler(FileSystemEventHandler):
    def __init__(
        self,
        logger: logging.Logger,
        dest_dir: str,
        mode: str = MODE_CONTENT,
        min_value: int = 0,
        suffix: str = ".pdf",
        settle_seconds: float = 0.5,
        max_tries: int = 10,
        watch_dir: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.logger = logger
        self.dest_dir = dest_dir
        self.mode = mode
        self.min_value = min_value
        self.suffix = suffix
        self.settle_seconds = settle_seconds
        self.max_tries = max_tries
        self.watch_dir = watch_dir

    def wait_until_stable(self, path: str) -> bool:
        # Wait for file size to stabilize (basic heuristic to avoid partial-write events)
        prev_size = -1
        for _ in range(self.max_tries):
            try:
                size = os.path.getsize(path)
            except OSError:
                size = -1
            if size == prev_size and size != -1:
                return True
            prev_size = size
            time.sleep(self.settle_seconds)
        return False

    def on_created(self, event):
        if event.is_directory:
            return
        self.process(event.src_path)

    def on_moved(self, event):
        # Files written under a temporary name and renamed into place
        if event.is_directory:
            return
        path = event.dest_path
        if self.watch_dir and os.path.dirname(os.path.abspath(path)) != os.path.abspath(self.watch_dir):
            return
        self.process(path)

    def process(self, path: str) -> None:
        if not self.wait_until_stable(path):
            self.logger.info("New file detected (may be incomplete): %s", path)
        else:
            self.logger.info("New file detected: %s", path)

        try:
            candidate = classify_path(path, mode=self.mode, min_value=self.min_value, suffix=self.suffix)
            if candidate is None:
                self.logger.info("Not a numbered PDF; skipping processing for %s", path)
                return
            target_dir = bucket_path(self.dest_dir, candidate.number)
            ensure_dir(target_dir)
            dest = os.path.join(target_dir, candidate.name)
            status = move_file(candidate.source_path, dest)
            self.logger.info("Moved %s -> %s (%s)", path, dest, status)
        except Exception:
            self.logger.exception("Error processing file %s", path)


def setup_logger(logfile: str) -> logging.Logger:
    logger = logging.getLogger("admin_sorter")
    logger.setLevel(logging.INFO)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    # Rotating file handler to avoid unbounded log growth
    handler = RotatingFileHandler(logfile, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    return logger


def parse_args(argv: Optional[Sequence[str]] = None, defaults: Optional[SorterConfig] = None) -> argparse.Namespace:
    d = defaults or SorterConfig()
    parser = argparse.ArgumentParser(description="Sort numbered PDF files into 500-wide bucket folders")
    parser.add_argument(
        "--source", "-s",
        default=d.source_dir,
        help=f"Directory holding the numbered PDFs (default {d.source_dir})"
    )
    parser.add_argument(
        "--dest", "-d",
        default=d.dest_dir,
        help=f"Root directory for bucket folders (default {d.dest_dir})"
    )
    parser.add_argument(
        "--logdir", "-l",
        default=d.log_dir,
        help=f"Directory to write logs to (default {d.log_dir})"
    )
    parser.add_argument("--mode", "-m", choices=MODES, default=d.mode, help="content: check %%PDF header; threshold: number must exceed --min-value")
    parser.add_argument("--min-value", type=int, default=d.min_value, help="Lower bound (exclusive) for threshold mode")
    parser.add_argument("--suffix", default=d.suffix, help="File name suffix to strip before parsing the number")
    parser.add_argument("--workers", "-w", type=int, default=d.workers, help="Number of concurrent moves")
    parser.add_argument("--fail-fast", action="store_true", default=d.fail_fast, help="Stop at the first failed move")
    parser.add_argument("--watch", action="store_true", help="Keep running and sort new files as they arrive")
    parser.add_argument("--settle", type=float, default=d.settle_seconds, help="Seconds to wait between file-size checks for settle heuristic")
    parser.add_argument("--tries", type=int, default=d.max_tries, help="Number of settle checks before giving up")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SorterConfig:
    config = SorterConfig(
        source_dir=os.path.abspath(args.source),
        dest_dir=os.path.abspath(args.dest),
        log_dir=os.path.abspath(args.logdir),
        mode=args.mode,
        min_value=args.min_value,
        suffix=args.suffix,
        workers=args.workers,
        fail_fast=args.fail_fast,
        settle_seconds=args.settle,
        max_tries=args.tries,
    )
    validate({"workers": config.workers, "min_value": config.min_value, "mode": config.mode})
    return config


def sort_directory(config: SorterConfig, logger: logging.Logger) -> List[MoveResult]:
    """Scan the source directory, create bucket folders and move every candidate."""
    candidates = list(scan(config.source_dir, mode=config.mode, min_value=config.min_value, suffix=config.suffix))
    logger.info("Found %d candidate file(s) in %s", len(candidates), config.source_dir)
    if not candidates:
        return []

    ensure_dirs(config.dest_dir, candidates, logger=logger)
    results = move_all(candidates, config.dest_dir, workers=config.workers, fail_fast=config.fail_fast, logger=logger)

    moved = sum(1 for r in results if r.ok)
    failed = sum(1 for r in results if r.status == FAILED)
    logger.info("Moved %d of %d file(s), %d failed", moved, len(results), failed)
    return results


def watch(config: SorterConfig, logger: logging.Logger) -> None:
    # Sort whatever is already there before waiting for new files
    sort_directory(config, logger)

    event_handler = NewFileHandler(
        logger,
        dest_dir=config.dest_dir,
        mode=config.mode,
        min_value=config.min_value,
        suffix=config.suffix,
        settle_seconds=config.settle_seconds,
        max_tries=config.max_tries,
        watch_dir=config.source_dir,
    )
    observer = Observer()
    observer.schedule(event_handler, config.source_dir, recursive=False)
    observer.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutdown requested, stopping observer")
        observer.stop()
    observer.join()


def main(argv: Optional[Sequence[str]] = None) -> int:
    found_config = config_exists()
    try:
        defaults = replace(SorterConfig(), **load_config(CONFIG_FILENAME)) if found_config else SorterConfig()
        args = parse_args(argv, defaults)
        config = build_config(args)
        ensure_dir(config.log_dir)
    except SorterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logfile = os.path.join(config.log_dir, "admin_sorter.log")
    logger = setup_logger(logfile)

    if not found_config:
        logger.warning("%s not found in %s; using defaults", CONFIG_FILENAME, os.getcwd())
    if args.dest == DEFAULT_DEST_DIR:
        logger.warning("No destination configured; using default %s (resolved to %s)", DEFAULT_DEST_DIR, config.dest_dir)

    logger.info("Starting admin sorter")
    logger.info("Source: %s", config.source_dir)
    logger.info("Destination: %s", config.dest_dir)
    logger.info("Mode: %s", config.mode)

    try:
        if args.watch:
            watch(config, logger)
            logger.info("Stopped")
            return 0
        results = sort_directory(config, logger)
    except SorterError as exc:
        logger.error("%s", exc)
        return 1

    return 1 if any(r.status == FAILED for r in results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
