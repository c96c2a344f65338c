# parking_desk/utils/logger.py
"""
Logging for the console process.
One root configuration (stdout + rotating logs/console.log) shared by every
module through get_logger(__name__). Request-level chatter from the HTTP and
AWS client libraries is kept at WARNING so operator actions stay readable.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from parking_desk.config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# httpx logs every request at INFO; boto logs credential lookups
QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "s3transfer", "urllib3")

_configured = False


def _handlers(fmt: logging.Formatter) -> list[logging.Handler]:
    console = logging.StreamHandler()
    handlers = [console]
    if settings.LOG_TO_FILE:
        os.makedirs(LOG_DIR, exist_ok=True)
        # Keeps last 10 × 5MB log files
        handlers.append(RotatingFileHandler(
            filename=os.path.join(LOG_DIR, "console.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        ))
    for handler in handlers:
        handler.setLevel(LOG_LEVEL)
        handler.setFormatter(fmt)
    return handlers


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(LOG_LEVEL)
    for handler in _handlers(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")):
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
