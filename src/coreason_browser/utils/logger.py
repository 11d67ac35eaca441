# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger


def configure_logging(log_dir: str | Path = "logs", level: str = "INFO") -> Path:
    """Install the stderr and JSON file sinks.

    Replaces any sinks previously registered with loguru, so calling it twice
    leaves exactly two handlers.

    Args:
        log_dir: Directory for ``app.log``; created if missing.
        level: Minimum level for the stderr sink. The file sink records DEBUG.

    Returns:
        Path: The log file path.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / "app.log"

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
        "<cyan>{extra[component]}</cyan> - <level>{message}</level>",
    )
    logger.add(
        log_file,
        level="DEBUG",
        rotation="10 MB",
        retention=5,
        serialize=True,
        enqueue=True,
    )
    return log_file


def get_logger(component: str) -> "Logger":
    """Return the shared loguru logger bound to a component name."""
    return logger.bind(component=component)


# Records emitted without a bound component still render with the stderr format.
logger.configure(extra={"component": "coreason_browser"})

__all__ = ["configure_logging", "get_logger", "logger"]
