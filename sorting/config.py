"""Run configuration for Admin Sorter.

Values come from three layers, later ones winning: built-in defaults, the
``[sorter]`` section of ``config.ini``, and command-line flags.
"""
from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from typing import Any, Dict

from sorting.classifier import DEFAULT_SUFFIX, MODE_CONTENT, MODES
from sorting.errors import ConfigError

CONFIG_FILENAME = "config.ini"
CONFIG_SECTION = "sorter"

# Edit these defaults as needed
DEFAULT_SOURCE_DIR = "."
DEFAULT_DEST_DIR = r"\\fileserver\Admin\Sorted"
DEFAULT_LOG_DIR = "logs"
DEFAULT_WORKERS = 8


@dataclass(frozen=True)
class SorterConfig:
    source_dir: str = DEFAULT_SOURCE_DIR
    dest_dir: str = DEFAULT_DEST_DIR
    log_dir: str = DEFAULT_LOG_DIR
    mode: str = MODE_CONTENT
    min_value: int = 0
    suffix: str = DEFAULT_SUFFIX
    workers: int = DEFAULT_WORKERS
    fail_fast: bool = False
    settle_seconds: float = 0.5
    max_tries: int = 10


# config.ini key -> (SorterConfig field, converter)
_KEYS = {
    "source": ("source_dir", str),
    "destination": ("dest_dir", str),
    "logdir": ("log_dir", str),
    "mode": ("mode", str),
    "min_value": ("min_value", int),
    "suffix": ("suffix", str),
    "workers": ("workers", int),
    "fail_fast": ("fail_fast", "bool"),
    "settle": ("settle_seconds", float),
    "tries": ("max_tries", int),
}


def config_exists(directory: str = ".") -> bool:
    return os.path.isfile(os.path.join(directory, CONFIG_FILENAME))


def load_config(path: str) -> Dict[str, Any]:
    """Read `path` and return SorterConfig field overrides.

    A missing file or a file without a ``[sorter]`` section yields an empty
    dict. Unknown keys are ignored; bad values raise ConfigError.
    """
    parser = configparser.ConfigParser()
    try:
        read = parser.read(path, encoding="utf-8")
    except configparser.Error as exc:
        raise ConfigError(f"Malformed config file {path}: {exc}") from exc
    if not read or not parser.has_section(CONFIG_SECTION):
        return {}

    section = parser[CONFIG_SECTION]
    values: Dict[str, Any] = {}
    for key, (field, convert) in _KEYS.items():
        if key not in section:
            continue
        try:
            if convert == "bool":
                values[field] = section.getboolean(key)
            else:
                values[field] = convert(section[key])
        except ValueError as exc:
            raise ConfigError(f"Invalid value for {key!r} in {path}: {section[key]!r}") from exc

    validate(values)
    return values


def validate(values: Dict[str, Any]) -> None:
    mode = values.get("mode")
    if mode is not None and mode not in MODES:
        raise ConfigError(f"mode must be one of {', '.join(MODES)}, got {mode!r}")
    workers = values.get("workers")
    if workers is not None and workers < 1:
        raise ConfigError(f"workers must be at least 1, got {workers}")
    min_value = values.get("min_value")
    if min_value is not None and min_value < 0:
        raise ConfigError(f"min_value must be non-negative, got {min_value}")
