"""
Logging Utilities

Root logger setup for an analysis run (stdout plus an optional rotating
run log) and a small stage-aware wrapper used by the orchestrator.
"""

import logging
import sys
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


DEFAULT_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)s | %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Libraries that log heavily at DEBUG
NOISY_LOGGERS = ("statsmodels", "numexpr", "joblib", "matplotlib")

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


def _level(name: str) -> int:
    return getattr(logging, str(name).upper())


def _console_handler(level: str, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_level(level))
    handler.setFormatter(formatter)
    return handler


def _file_handler(path: str, level: str, formatter: logging.Formatter) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
    )
    handler.setLevel(_level(level))
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    config: Optional[Dict[str, Any]] = None,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Replace the root handlers with a console handler and, when a path is
    given, a rotating file handler.

    Args:
        config: Optional dict with 'level', 'format', 'file' and 'file_level'
                keys; explicit entries win over the keyword defaults.
        log_level: Root and console level.
        log_file: Run log path. The file always records DEBUG and up
                  unless 'file_level' says otherwise.
        log_format: logging format string.
    """
    config = config or {}
    log_level = config.get("level", log_level)
    log_format = config.get("format", log_format or DEFAULT_FORMAT)
    log_file = config.get("file", log_file)
    file_level = config.get("file_level", "DEBUG")

    formatter = logging.Formatter(log_format, datefmt=DEFAULT_DATEFMT)
    root = logging.getLogger()

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    handlers = [_console_handler(log_level, formatter)]
    if log_file:
        handlers.append(_file_handler(log_file, file_level, formatter))

    # Root must pass DEBUG through when the file wants it
    levels = [_level(log_level)] + ([_level(file_level)] if log_file else [])
    root.setLevel(min(levels))
    for handler in handlers:
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class PipelineLogger:
    """
    Logger wrapper that prefixes a key=value context (run id, stratum)
    and logs stage boundaries, metrics and table sizes in a fixed shape.
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self._context: Dict[str, Any] = {}

    def set_context(self, **kwargs) -> None:
        self._context.update(kwargs)

    def clear_context(self) -> None:
        self._context = {}

    def _format_message(self, message: str) -> str:
        if not self._context:
            return message
        prefix = " ".join(f"{k}={v}" for k, v in self._context.items())
        return f"[{prefix}] {message}"

    def _log(self, level: int, message: str, **kwargs) -> None:
        self.logger.log(level, self._format_message(message), **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def step_start(self, step_name: str) -> None:
        self.info(f"STAGE | {step_name} started")

    def step_complete(self, step_name: str, duration: Optional[float] = None) -> None:
        if duration is None:
            self.info(f"STAGE | {step_name} finished")
        else:
            self.info(f"STAGE | {step_name} finished in {duration:.2f}s")

    @contextmanager
    def stage(self, step_name: str) -> Iterator[None]:
        """Log start and timed completion around a block; failures propagate untimed."""
        start = time.perf_counter()
        self.step_start(step_name)
        yield
        self.step_complete(step_name, time.perf_counter() - start)

    def metric(self, name: str, value: Any) -> None:
        shown = f"{value:.4f}" if isinstance(value, float) else value
        self.info(f"METRIC | {name}: {shown}")

    def data_stats(self, name: str, count: int, columns: Optional[int] = None) -> None:
        shape = f"{count:,} rows" + (f", {columns} columns" if columns else "")
        self.info(f"DATA | {name}: {shape}")
