"""Shared utilities for atlaspack."""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

# Rich console for pretty output
console = Console(stderr=True)

FILE_LOG_FORMAT = "[%(asctime)s][%(name)s][%(levelname)s] %(message)s"
FILE_LOG_DATEFMT = "%Y-%m-%d][%H:%M:%S"


def setup_logging(
    level: Union[int, str] = logging.WARNING,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Set up logging with a Rich handler and an optional trace file.

    The console handler honours ``level``; the file handler always records
    everything down to DEBUG.
    """
    console_handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    console_handler.setLevel(level)
    handlers = [console_handler]

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=FILE_LOG_DATEFMT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("atlaspack")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module."""
    return logging.getLogger(f"atlaspack.{name}")


def verbosity_to_level(verbose: int) -> int:
    """Map a ``-v`` count to a logging level."""
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def format_size(size_bytes: float) -> str:
    """Format byte size as human-readable string."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"
