"""
Structured logging for the booking assistant.

JSON lines (python-json-logger) outside development. Driver phone numbers
are masked to their last four digits in every formatted record.
"""
import logging
import re
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from core.settings import settings


# Attributes every LogRecord carries; anything else arrived through `extra`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}
_E164 = re.compile(r"\+\d{7,15}")


def mask_phone(value: Any) -> Any:
    """+14065550100 -> ***0100; anything that is not a string passes through."""
    if not isinstance(value, str):
        return value
    return _E164.sub(lambda m: "***" + m.group(0)[-4:], value)


class PhoneMaskingFilter(logging.Filter):
    """Mask phone numbers in every string extra, the message and its args."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field, value in list(vars(record).items()):
            if field not in _RECORD_ATTRS and isinstance(value, str):
                setattr(record, field, mask_phone(value))
        if isinstance(record.msg, str):
            record.msg = mask_phone(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(mask_phone(arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: mask_phone(arg) for key, arg in record.args.items()}
        return True


class BookingJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter carrying source location and deployment fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno
        log_record['app_name'] = settings.app_name
        log_record['environment'] = settings.app_env

        if record.exc_info:
            log_record['exc_info'] = self.formatException(record.exc_info)


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Log level name; defaults to settings.log_level
        json_logs: Force JSON on/off; defaults to JSON in staging/production
    """
    level = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.app_env in ["production", "staging"]

    if json_logs:
        formatter = BookingJsonFormatter(
            fmt='%(timestamp)s %(level)s %(name)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(PhoneMaskingFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Provider SDKs log request bodies at DEBUG, phone numbers included
    for name in ("twilio.http_client", "stripe", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.is_development and settings.db_echo else logging.WARNING
    )

    logging.info(
        "Logging configured",
        extra={"log_level": level, "environment": settings.app_env, "json_logging": json_logs}
    )


class LogContext:
    """
    Attach fixed context fields (phone, booking id) to a unit of work.

    An exception escaping the block is logged with those fields and re-raised.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        self.logger = logger
        self.context = context

    def __enter__(self) -> 'LogContext':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.logger.error(
                f"Unhandled {exc_type.__name__}",
                extra=self.context,
                exc_info=(exc_type, exc_val, exc_tb)
            )

    def log(self, level: str, message: str, **extra_fields: Any) -> None:
        getattr(self.logger, level.lower())(message, extra={**self.context, **extra_fields})
