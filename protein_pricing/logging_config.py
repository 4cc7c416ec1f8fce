"""
logging_config.py — Loguru Setup for the Pricing API

Loguru is the only logging backend. stdlib loggers (uvicorn, SQLAlchemy,
httpx, alembic) are bridged into it so one sink sees everything.

Business Rules:
- JSON lines on stdout when APP_ENV=production, colored text otherwise
- Every record carries extra["request_id"]; the request middleware binds the
  real id, anything outside a request shows "-"
- Anthropic keys, Mapbox access tokens and bearer tokens are masked before
  any sink sees the message
- httpx/httpcore/SQLAlchemy chatter is held at WARNING

Called by: protein_pricing/main.py (lifespan)
Depends on: LOG_LEVEL and APP_ENV environment variables
"""

import logging
import os
import re
import sys

from loguru import logger

NO_REQUEST = "-"
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")

_SECRETS = (
    (re.compile(r"sk-ant-[A-Za-z0-9_\-]+"), "sk-ant-***"),
    (re.compile(r"(access_token=)[^&\s\"']+"), r"\1***"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1***"),
)

_DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)


def redact(message: str) -> str:
    for pattern, replacement in _SECRETS:
        message = pattern.sub(replacement, message)
    return message


def _scrub(record) -> None:
    record["message"] = redact(record["message"])


def setup_logging() -> None:
    """Install the stdout sink and the stdlib bridge. Safe to call twice."""
    logger.remove()
    logger.configure(extra={"request_id": NO_REQUEST}, patcher=_scrub)

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    is_production = os.getenv("APP_ENV", "development").lower() == "production"

    if is_production:
        logger.add(sys.stdout, level=log_level, format="{message}", serialize=True)
    else:
        logger.add(sys.stdout, level=log_level, format=_DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_LoguruBridge()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured (level={}, production={})", log_level, is_production)


class _LoguruBridge(logging.Handler):
    """Forward stdlib records to Loguru, keeping the original level name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())
