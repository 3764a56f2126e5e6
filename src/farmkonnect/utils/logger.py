"""
Loguru setup for the FarmKonnect services layer

Routers log through the standard library; the email, push and cache services
log through the loguru logger configured here. Sinks are driven by the
environment:

    LOG_LEVEL   minimum level, INFO by default
    LOG_DIR     directory of the rotating log file, ./logs by default
    LOG_JSON    "true" writes the file sink as JSON lines
"""

import os
import sys
from pathlib import Path
from loguru import logger
from typing import Optional

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    log_file: str = "farmkonnect.log",
    rotation: str = "10 MB",
    retention: str = "30 days",
    serialize: Optional[bool] = None
):
    """
    Replace loguru's default sink with a console sink and a zipped, rotating file

    Environment variables take precedence over the level, directory and
    serialize arguments.

    Returns:
        Path of the log file
    """
    logger.remove()

    level = os.getenv("LOG_LEVEL", log_level).upper()
    log_dir = os.getenv("LOG_DIR") or log_dir or os.path.join(os.getcwd(), "logs")
    if serialize is None:
        serialize = os.getenv("LOG_JSON", "false").lower() == "true"

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    log_path = os.path.join(log_dir, log_file)
    logger.add(
        log_path,
        format=FILE_FORMAT,
        level=level,
        rotation=rotation,
        retention=retention,
        compression="zip",
        serialize=serialize
    )

    logger.info(f"Logging initialized - Level: {level}, Log file: {log_path}")
    return log_path


def get_logger(component: Optional[str] = None):
    """
    Loguru logger for a service

    The component is attached as `extra["component"]`, which shows up in
    JSON log lines.
    """
    if component:
        return logger.bind(component=component)
    return logger


setup_logging()
