"""
Loguru sinks for the geonames-sync commands.

Interactive runs log to stderr. Unattended daily updates usually also set
PIPELINE_LOG_FILE, which adds a rotating, gzip-compressed file sink.
"""

import sys
from pathlib import Path

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "1 week",
) -> None:
    """
    Replace the loguru sinks.

    Args:
        level: Minimum level for every sink
        log_file: Optional file that receives the same records
        rotation: When the file sink starts a new file (e.g. "10 MB", "1 day")
        retention: How long rotated files are kept (e.g. "1 week", "10 files")
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="gz",
        )

    logger.debug(f"Logging to stderr{f' and {log_file}' if log_file else ''} at {level}")
