import logging
import os
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from app.config import settings

# Context variables for request tracking
request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

LOG_DIR = "logs"
SERVICE_NAME = "bloodlink-api"


class ContextualJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every record with the request context"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['environment'] = settings.ENVIRONMENT
        log_record['service'] = SERVICE_NAME

        if request_id.get():
            log_record['request_id'] = request_id.get()
        if user_id.get():
            log_record['user_id'] = user_id.get()

        if record.exc_info:
            log_record['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_record.update(record.extra_fields)


class ApplicationLogger:
    """Centralized logger class for the application"""

    _instance = None
    _loggers = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._setup_logging()
        return cls._instance

    def _setup_logging(self):
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        formatter = ContextualJsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(funcName)s:%(lineno)d %(message)s"
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

        if settings.LOG_TO_FILE:
            self._setup_file_handlers(formatter)

        self._configure_third_party_loggers()

    def _setup_file_handlers(self, formatter):
        os.makedirs(LOG_DIR, exist_ok=True)
        root_logger = logging.getLogger()

        app_handler = RotatingFileHandler(
            f"{LOG_DIR}/app.log",
            maxBytes=10_000_000,
            backupCount=10
        )
        app_handler.setFormatter(formatter)
        app_handler.setLevel(logging.INFO)
        root_logger.addHandler(app_handler)

        error_handler = TimedRotatingFileHandler(
            f"{LOG_DIR}/error.log",
            when="midnight",
            interval=1,
            backupCount=30
        )
        error_handler.setFormatter(formatter)
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

        # Security and audit trails are kept longer than the app log
        for name, backups in (("security", 90), ("audit", 90), ("access", 30)):
            handler = TimedRotatingFileHandler(
                f"{LOG_DIR}/{name}.log",
                when="midnight",
                interval=1,
                backupCount=backups
            )
            handler.setFormatter(formatter)
            named_logger = logging.getLogger(name)
            named_logger.addHandler(handler)
            named_logger.setLevel(logging.INFO)

        perf_handler = RotatingFileHandler(
            f"{LOG_DIR}/performance.log",
            maxBytes=5_000_000,
            backupCount=5
        )
        perf_handler.setFormatter(formatter)
        perf_logger = logging.getLogger("performance")
        perf_logger.addHandler(perf_handler)
        perf_logger.setLevel(logging.INFO)

    def _configure_third_party_loggers(self):
        if settings.ENVIRONMENT.lower() in ["development", "dev", "test"]:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").handlers.clear()

    def get_logger(self, name: str) -> logging.Logger:
        if name not in self._loggers:
            self._loggers[name] = logging.getLogger(name)
        return self._loggers[name]


app_logger = ApplicationLogger()


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance; pass ``__name__``."""
    return app_logger.get_logger(name)


def log_security_event(
    event_type: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
):
    security_logger = logging.getLogger("security")

    log_data = {
        'event_type': event_type,
        'ip_address': ip_address,
        'user_agent': user_agent,
        'severity': 'high' if event_type in ['failed_login_attempt', 'unauthorized_access_attempt'] else 'medium'
    }
    if user_id:
        log_data['target_user_id'] = user_id
    if details:
        log_data.update(details)

    security_logger.info(f"Security event: {event_type}", extra={'extra_fields': log_data})


def log_audit_event(
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> None:
    """Record who changed what on a domain resource"""
    audit_logger = logging.getLogger("audit")
    log_data = {
        'action': action,
        'resource_type': resource_type,
        'resource_id': resource_id,
        'old_values': old_values,
        'new_values': new_values,
        'actor_id': user_id,
    }
    audit_logger.info(f"Audit event: {resource_type} {action}", extra={'extra_fields': log_data})


def log_performance_metric(
    operation: str,
    duration_seconds: float,
    additional_metrics: Optional[Dict[str, Any]] = None
):
    perf_logger = logging.getLogger("performance")

    log_data = {
        'operation': operation,
        'duration_seconds': round(duration_seconds, 4),
        'performance_category': 'slow' if duration_seconds > 1.0 else 'normal'
    }
    if additional_metrics:
        log_data.update(additional_metrics)

    perf_logger.info(f"Performance metric: {operation}", extra={'extra_fields': log_data})


def log_api_access(
    method: str,
    path: str,
    status_code: int,
    response_time: float,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None
):
    access_logger = logging.getLogger("access")

    log_data = {
        'http_method': method,
        'path': path,
        'status_code': status_code,
        'response_time_seconds': round(response_time, 4),
        'ip_address': ip_address
    }
    if user_id:
        log_data['user_id'] = user_id

    access_logger.info(f"{method} {path} - {status_code}", extra={'extra_fields': log_data})


class LogContext:
    """Context manager for setting request context"""

    def __init__(self, req_id: str = None, usr_id: str = None):
        self.request_id = req_id
        self.user_id = usr_id
        self.tokens = []

    def __enter__(self):
        if self.request_id:
            self.tokens.append(request_id.set(self.request_id))
        if self.user_id:
            self.tokens.append(user_id.set(self.user_id))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for token in reversed(self.tokens):
            token.var.reset(token)
