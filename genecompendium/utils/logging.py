"""
Logging configuration for genecompendium.

Curation decisions (dataset inclusion/exclusion, filter violations,
imputation) are reported through a single loguru logger so that a run
can be followed from the console or audited from a log file.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Remove default handler
logger.remove()

_configured = False


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str | Path] = None,
    show_time: bool = True,
    show_level: bool = True,
    rich_traceback: bool = True,
) -> None:
    """
    Configure logging for genecompendium.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file (rotated at 10 MB)
        show_time: Whether to show timestamps
        show_level: Whether to show log levels
        rich_traceback: Whether to include variable values in tracebacks

    Example:
        >>> from genecompendium.utils.logging import setup_logging, logger
        >>> setup_logging(level="DEBUG", log_file="curation.log")
        >>> logger.info("Starting curation")
    """
    global _configured

    if _configured:
        logger.remove()

    format_parts = []
    if show_time:
        format_parts.append("<green>{time:YYYY-MM-DD HH:mm:ss}</green>")
    if show_level:
        format_parts.append("<level>{level: <8}</level>")
    format_parts.append("<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>")
    format_parts.append("<level>{message}</level>")

    format_string = " | ".join(format_parts)

    logger.add(
        sys.stderr,
        format=format_string,
        level=level,
        colorize=True,
        backtrace=rich_traceback,
        diagnose=rich_traceback,
    )

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Plain format for files
        file_format = format_string
        for tag in ("green", "level", "cyan"):
            file_format = file_format.replace(f"<{tag}>", "").replace(f"</{tag}>", "")

        logger.add(
            log_path,
            format=file_format,
            level=level,
            rotation="10 MB",
            retention="1 week",
            compression="zip",
        )

    _configured = True
    logger.debug(f"Logging configured: level={level}, file={log_file}")


if not _configured:
    setup_logging(level="INFO")


__all__ = ["logger", "setup_logging"]
