"""
Logging Configuration

Plain-text logs locally, one JSON object per line in production.

Raw infrastructure errors (store unreachable, failed forced logout) are
logged here with full detail and never returned to API callers.
"""
import logging
import sys
from typing import Any, Dict
import json
from datetime import datetime, timezone

# Security events that record an outcome rather than a refused request
INFORMATIONAL_EVENTS = {"forced_logout"}

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying the tenant context fields."""

    EXTRA_FIELDS = (
        "org_id",
        "user_id",
        "role",
        "request_id",
        "security_event",
        "event_type",
        "affected_users",
        "affected_sessions",
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure the root logger. Call once at startup.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: emit JSON lines instead of plain text
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level.upper())
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_security_event(event_type: str, details: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Record a security event with its context as structured fields.

    Event types:
    - authorization_denied: non-owner tried to customize capabilities
    - tier_not_eligible: customization attempted on a tier without it
    - tenant_isolation_violation: token org does not match request org
    - forced_logout: sessions revoked (logged at INFO)
    - force_logout_*_unauthorized, force_logout_user_cross_org_attempt:
      refused forced logout requests
    """
    level = logging.INFO if event_type in INFORMATIONAL_EVENTS else logging.WARNING
    logger.log(
        level,
        f"SECURITY EVENT: {event_type}",
        extra={"security_event": True, "event_type": event_type, **details},
    )
