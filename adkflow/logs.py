"""Logging setup for command-line runs: to stderr, a temp file, or both."""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

__all__ = ["LogConfig", "log_to_stderr", "log_to_tmp_folder", "create_multi_logger"]

_LOG_FORMAT = "%(asctime)s %(filename)s:%(lineno)d: %(message)s"
_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

_LEVELS = {
    0: logging.DEBUG,
    1: logging.INFO,
    2: logging.WARNING,
    3: logging.ERROR,
}

_installed_handlers: list[logging.Handler] = []


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


@dataclass
class LogConfig:
    """Where and at what level log files are written.

    ``log_level`` is 0 (debug), 1 (info), 2 (warning) or 3 (error).
    """

    log_level: int = 1
    sub_folder: str = "agents_log"
    log_file_prefix: str = "agent"
    log_file_timestamp: str = field(default_factory=_timestamp)


def _python_level(log_level: int) -> int:
    return _LEVELS.get(log_level, logging.INFO)


def _install(handlers: list[logging.Handler], log_level: int) -> None:
    """Replace the handlers installed earlier by this module with *handlers*."""
    root = logging.getLogger()
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    for old in _installed_handlers:
        root.removeHandler(old)
        old.close()
    _installed_handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
        _installed_handlers.append(handler)
    root.setLevel(_python_level(log_level))


def log_to_stderr(log_level: int = 1) -> None:
    """Send log records to standard error."""
    _install([logging.StreamHandler(sys.stderr)], log_level)


def _prepare_log_file(config: LogConfig) -> Path:
    log_dir = Path(tempfile.gettempdir()) / config.sub_folder
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OSError(f"failed to create log directory: {exc}") from exc

    log_path = log_dir / f"{config.log_file_prefix}.{config.log_file_timestamp}.log"
    try:
        log_path.write_bytes(b"")
    except OSError as exc:
        raise OSError(f"failed to create log file: {exc}") from exc

    latest = log_dir / f"{config.log_file_prefix}.latest.log"
    try:
        latest.unlink()
    except OSError:
        pass
    try:
        os.symlink(log_path, latest)
    except OSError as exc:
        print(f"Warning: Failed to create symlink to log file: {exc}", file=sys.stderr)
    else:
        print(f"To access latest log: tail -F {latest}")

    print(f"Log setup complete: {log_path}")
    return log_path


def log_to_tmp_folder(config: Optional[LogConfig] = None) -> Path:
    """Send log records to a new file under the system temp folder; return its path."""
    config = config or LogConfig()
    log_path = _prepare_log_file(config)
    _install([logging.FileHandler(log_path, encoding="utf-8")], config.log_level)
    return log_path


def create_multi_logger(config: Optional[LogConfig] = None) -> Path:
    """Send log records to standard error and to a new temp file; return its path."""
    config = config or LogConfig()
    log_path = _prepare_log_file(config)
    _install(
        [
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_path, mode="a", encoding="utf-8"),
        ],
        config.log_level,
    )
    return log_path