"""
Utilities package: logging, metrics, and collaborator adapters
(embedding generator, LLM providers).
"""

from .logging_config import (
    setup_logging,
    get_logger,
    log_routing_decision,
    log_handoff_event,
    log_feedback_event
)
from .monitoring import RoutingMetricsCollector, monitor_operation

__all__ = [
    "setup_logging",
    "get_logger",
    "log_routing_decision",
    "log_handoff_event",
    "log_feedback_event",
    "RoutingMetricsCollector",
    "monitor_operation"
]
