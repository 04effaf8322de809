# qr_attendance/core/logging.py
import asyncio
import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
import os
import json
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
import traceback
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Attach the current request id to every record"""
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'request_id'):
            record.request_id = request_id_var.get() or "-"
        return True


class CustomJsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""
    def __init__(self, **kwargs):
        super().__init__()
        self.kwargs = kwargs

    def format(self, record):
        json_record = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if getattr(record, 'request_id', None) not in (None, "-"):
            json_record['request_id'] = record.request_id

        if record.exc_info:
            json_record['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'duration'):
            json_record['duration_ms'] = record.duration

        if self.kwargs.get('extra_fields'):
            for field in self.kwargs['extra_fields']:
                if hasattr(record, field):
                    json_record[field] = getattr(record, field)

        return json.dumps(json_record, default=str)


class LoggerFactory:
    """Factory class for configuring the service's loggers"""

    EXTRA_FIELDS = ['session_id', 'class_id', 'checkin_id', 'error_code', 'subscription_id']

    @staticmethod
    def create_logger(
        name: str,
        log_dir: Optional[str] = None,
        level: str = "INFO",
        json_console: bool = False
    ) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        # Remove existing handlers if any
        if logger.handlers:
            logger.handlers.clear()

        request_filter = RequestIdFilter()
        json_formatter = CustomJsonFormatter(extra_fields=LoggerFactory.EXTRA_FIELDS)

        console = logging.StreamHandler()
        console.addFilter(request_filter)
        if json_console:
            console.setFormatter(json_formatter)
        else:
            console.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s'
            ))
        logger.addHandler(console)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            file_handlers = {
                'app': RotatingFileHandler(
                    os.path.join(log_dir, 'app.log'),
                    maxBytes=10 * 1024 * 1024,  # 10MB
                    backupCount=5
                ),
                'error': RotatingFileHandler(
                    os.path.join(log_dir, 'error.log'),
                    maxBytes=10 * 1024 * 1024,
                    backupCount=5
                ),
                'access': TimedRotatingFileHandler(
                    os.path.join(log_dir, 'access.log'),
                    when='midnight',
                    interval=1,
                    backupCount=30
                ),
            }
            for handler_name, handler in file_handlers.items():
                if handler_name == 'error':
                    handler.setLevel(logging.ERROR)
                handler.addFilter(request_filter)
                handler.setFormatter(json_formatter)
                logger.addHandler(handler)

        logger.propagate = False
        return logger


def configure_logging(level: str = "INFO", log_dir: Optional[str] = None, json_console: bool = False) -> logging.Logger:
    """Configure the package logger; module loggers inherit its handlers"""
    return LoggerFactory.create_logger("qr_attendance", log_dir=log_dir, level=level, json_console=json_console)


def log_function_call(logger):
    """Decorator to log function entry, exit, and duration"""
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = datetime.now()
            func_name = func.__name__

            logger.debug(f"Entering function: {func_name}")
            try:
                result = await func(*args, **kwargs)
                duration = (datetime.now() - start_time).total_seconds() * 1000
                logger.debug(
                    f"Exiting function: {func_name}",
                    extra={'duration': duration}
                )
                return result
            except Exception:
                logger.debug(f"Error in function: {func_name}", exc_info=True)
                raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = datetime.now()
            func_name = func.__name__

            logger.debug(f"Entering function: {func_name}")
            try:
                result = func(*args, **kwargs)
                duration = (datetime.now() - start_time).total_seconds() * 1000
                logger.debug(
                    f"Exiting function: {func_name}",
                    extra={'duration': duration}
                )
                return result
            except Exception:
                logger.debug(f"Error in function: {func_name}", exc_info=True)
                raise

        return async_wrapper if asyncio.iscoroutinefunction(func) else sync_wrapper
    return decorator
