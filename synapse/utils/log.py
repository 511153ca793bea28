"""
Loguru sink configuration.

Modules log through ``from loguru import logger``; this only decides where the
records go. Call ``configure_logging()`` once from an entrypoint.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from ..config import config

_CONSOLE_FORMAT = (
    "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | {message}"
)

_configured = False


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Path | str] = None,
    force: bool = False,
) -> None:
    """
    Route loguru output to stderr and, optionally, a rotating file.

    Args:
        level: Minimum level (defaults to config.logging.log_level)
        log_file: Explicit log file; when None and LOG_TO_FILE is set,
            writes to <logs_dir>/synapse.log
        force: Reconfigure even if already configured
    """
    global _configured
    if _configured and not force:
        return

    level = (level or config.logging.log_level).upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)

    if log_file is None and config.logging.log_to_file:
        config.prepare_fs()
        log_file = config.paths.logs_dir / "synapse.log"

    if log_file is not None:
        logger.add(
            str(log_file),
            level=level,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
        )

    _configured = True
    logger.debug(f"Logging configured (level={level}, file={log_file})")
