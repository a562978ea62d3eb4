"""
Logging configuration for the agent routing service.
Structured output with console, rotating file and JSON handlers.
"""

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from config.settings import Settings, settings as default_settings

_RESERVED_RECORD_FIELDS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName', 'message', 'asctime'
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Extra fields passed through ``extra=`` end up under the "extra" key.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED_RECORD_FIELDS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str)


class RoutingLogFilter(logging.Filter):
    """
    Stamps service context on every record and masks credentials that end up
    in log messages (bearer tokens, api keys, secrets).
    """

    SENSITIVE_PATTERN = re.compile(
        r"(?i)\b(password|token|api[_-]?key|secret|credential|bearer)(\s*[=:]\s*|\s+)(\S+)"
    )

    def __init__(self, service: str = "agent-routing", environment: str = "production"):
        super().__init__()
        self.service = service
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        record.environment = self.environment

        message = record.getMessage()
        if self.SENSITIVE_PATTERN.search(message):
            record.msg = self.SENSITIVE_PATTERN.sub(r"\1\2****", message)
            record.args = ()

        return True


def _rotating_handler(filename: Path, level: str, formatter: str, megabytes: int, backups: int) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": str(filename),
        "maxBytes": megabytes * 1024 * 1024,
        "backupCount": backups,
        "encoding": "utf-8",
        "filters": ["routing_filter"]
    }


def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Configure handlers and formatters once at process start.
    """
    config = config or default_settings
    log_dir = Path(config.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    environment = 'development' if config.DEBUG else 'production'
    package_level = "DEBUG" if config.DEBUG else "INFO"

    all_handlers = ["console", "file_general", "file_json", "file_error"]

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)-8s %(name)s | %(message)s",
                "datefmt": "%H:%M:%S"
            },
            "detailed": {
                "format": "%(asctime)s %(levelname)-8s %(name)s [%(module)s.%(funcName)s:%(lineno)d] %(message)s"
            },
            "json": {"()": JSONFormatter}
        },
        "filters": {
            "routing_filter": {
                "()": RoutingLogFilter,
                "service": "agent-routing",
                "environment": environment
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": package_level,
                "formatter": "standard",
                "stream": sys.stdout,
                "filters": ["routing_filter"]
            },
            "file_general": _rotating_handler(log_dir / "agent_routing.log", "INFO", "detailed", 50, 10),
            "file_json": _rotating_handler(log_dir / "agent_routing.json", "INFO", "json", 100, 5),
            "file_error": _rotating_handler(log_dir / "errors.log", "ERROR", "detailed", 10, 20)
        },
        "root": {"level": config.LOG_LEVEL, "handlers": all_handlers},
        "loggers": {
            "agent_routing": {"level": package_level, "handlers": all_handlers, "propagate": False},
            "uvicorn": {"level": "INFO", "handlers": ["console", "file_general"], "propagate": False},
            "sqlalchemy.engine": {"level": "WARNING", "handlers": ["file_general"], "propagate": False}
        }
    }

    logging.config.dictConfig(logging_config)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("groq").setLevel(logging.WARNING)
    logging.getLogger("sentence_transformers").setLevel(logging.WARNING)

    logging.getLogger("agent_routing").info("Logging system initialized", extra={
        "debug_mode": config.DEBUG,
        "log_level": config.LOG_LEVEL
    })


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_routing_decision(
    query: str,
    target_agent: str,
    source: str,
    confidence: float,
    processing_time: float,
    current_role: Optional[str] = None
):
    """
    Log one routing decision for offline tuning of thresholds.

    Args:
        query: Routed text (only a hash and length are logged)
        target_agent: Selected agent role
        source: Tier that produced the decision
        confidence: Decision confidence
        processing_time: Seconds spent in route()
        current_role: Role the conversation was with, if any
    """
    routing_logger = logging.getLogger("agent_routing.routing")

    routing_logger.info(f"Routed to {target_agent} via {source}", extra={
        "query_hash": hash(query) % 1000000,
        "query_length": len(query),
        "target_agent": target_agent,
        "routing_source": source,
        "confidence": confidence,
        "processing_time": processing_time,
        "current_role": current_role,
        "event_type": "routing_decision"
    })


def log_handoff_event(
    from_agent: str,
    to_agent: str,
    success: bool,
    reason: str,
    user_id: Optional[str] = None,
    failure_code: Optional[str] = None
):
    """Log a handoff attempt, accepted or rejected."""
    handoff_logger = logging.getLogger("agent_routing.handoff")

    data = {
        "from_agent": from_agent,
        "to_agent": to_agent,
        "success": success,
        "reason": reason,
        "user_id": user_id,
        "event_type": "handoff"
    }
    if failure_code:
        data["failure_code"] = failure_code

    if success:
        handoff_logger.info(f"Handoff {from_agent} -> {to_agent}", extra=data)
    else:
        handoff_logger.warning(f"Handoff {from_agent} -> {to_agent} rejected: {failure_code}", extra=data)


def log_feedback_event(event: str, details: Dict[str, Any]):
    """Log feedback intake and promotion events."""
    feedback_logger = logging.getLogger("agent_routing.feedback")
    feedback_logger.info(f"Feedback {event}", extra={
        "event_type": f"feedback_{event}",
        "details": details
    })
