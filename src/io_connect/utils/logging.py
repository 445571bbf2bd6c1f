"""Logging helpers shared across the client."""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
ROOT_LOGGER_NAME = "io_connect"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the ``io_connect`` hierarchy."""
    return logging.getLogger(name)


def configure_logging(
    level: int | str = logging.INFO,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the package logger.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Logging level for the package logger
        log_file: Optional path of a file that receives the same records

    Returns:
        The configured package logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, "_io_connect_handler", False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._io_connect_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root


def format_exception(exc: BaseException) -> str:
    return f"[EXCEPTION] {type(exc).__name__}: {exc}"


@contextmanager
def log_timing(logger: logging.Logger, message: str, enabled: bool = True) -> Iterator[None]:
    """Log how long the wrapped block took, in the ``[NETWORK]`` format."""
    if not enabled:
        yield
        return
    started = time.monotonic()
    try:
        yield
    finally:
        elapsed = time.monotonic() - started
        logger.info(f"[NETWORK] {message} {elapsed:.4f} seconds")
