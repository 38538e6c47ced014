import logging
from logging import FileHandler, Logger, LogRecord, StreamHandler
import os
import re
from typing import Any

from authcore.main.config import config

LOG_DIR = os.path.join(os.path.dirname(__file__), "..", "logs")
LOG_FILE = os.path.join(LOG_DIR, "debug.log")

if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR)

logging_format = "%(asctime)s [%(levelname)s]|[%(process)d]| %(name)s: %(message)s"
time_logging_format = "%Y-%m-%d %H:%M:%S"

log_level = getattr(logging, config.app.LOG_LEVEL.upper(), logging.INFO)
file_log_level = getattr(logging, config.app.LOG_LEVEL_FILE.upper(), logging.WARNING)

_JWT_RE = re.compile(r"\beyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+")
_BEARER_RE = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9_\-\.=]+")


def redact_tokens(message: str) -> str:
    """Mask bearer credentials and compact JWTs in a log message."""
    message = _BEARER_RE.sub("Bearer ***", message)
    return _JWT_RE.sub("***", message)


class TokenRedactionFilter(logging.Filter):
    """
    Rewrites each record so signed tokens never reach a handler.

    The record is rendered once with its args, redacted, and stored back
    as a plain message.
    """

    def filter(self, record: LogRecord) -> bool:
        rendered = record.getMessage()
        redacted = redact_tokens(rendered)
        if redacted != rendered:
            record.msg = redacted
            record.args = None
        return True


def get_file_handler() -> FileHandler:
    file_handler = logging.FileHandler(LOG_FILE, "a", "utf-8")
    file_handler.setLevel(file_log_level)
    file_handler.setFormatter(logging.Formatter(logging_format, time_logging_format))
    return file_handler


def get_stream_handler(fmt: str = logging_format) -> StreamHandler:  # type: ignore
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(logging.Formatter(fmt, time_logging_format))
    return stream_handler


def get_logger(name: Any, *, plain_format: bool = False) -> Logger:
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(log_level)
    logger.addFilter(TokenRedactionFilter())

    if plain_format:
        logger.addHandler(
            get_stream_handler("%(asctime)s [%(process)d]| %(message)s")
        )
    else:
        logger.addHandler(get_file_handler())
        logger.addHandler(get_stream_handler())

    logger.propagate = False
    return logger
