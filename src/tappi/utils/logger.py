"""Logging configuration using loguru."""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

DEFAULT_JSON_LOG_FILE = "logs/tappi.jsonl"


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    log_format: str = "text",
    json_log_file: str | Path | None = None,
) -> None:
    """
    Configure the loguru logger.

    Console output is always human-readable. File sinks are optional: a plain
    text file (``log_file``) and a JSONL file whose records carry the fields
    bound by ``tappi.utils.structured_logging``.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a text log file
        rotation: Log rotation size (e.g., "10 MB", "1 day")
        retention: Log retention period (e.g., "7 days")
        log_format: "json", "text" or "both"
        json_log_file: Path of the JSONL file, defaults to logs/tappi.jsonl
    """
    logger.remove()

    use_json = log_format in ("json", "both")
    use_text = log_format in ("text", "both")
    if not use_json and not use_text:
        use_json = use_text = True

    if use_text:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    if use_text and log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path),
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )

    if use_json:
        json_path = Path(json_log_file or DEFAULT_JSON_LOG_FILE)
        json_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(json_path),
            format="{message}",
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
            serialize=True,
        )


# Console-only until the entry point reconfigures it
setup_logging(log_format="text")

__all__ = ["logger", "setup_logging"]
