"""Handoff protocol between the coordinator and specialist agents."""

from .protocol import (
    Handoff,
    HandoffDecision,
    HandoffFailure,
    HandoffProtocol,
    HandoffRecord,
    HandoffResult,
    can_handoff,
    create_handoff,
    format_handoff_message,
    is_handoff_target,
    valid_handoff_targets
)

__all__ = [
    "Handoff",
    "HandoffDecision",
    "HandoffFailure",
    "HandoffProtocol",
    "HandoffRecord",
    "HandoffResult",
    "can_handoff",
    "create_handoff",
    "format_handoff_message",
    "is_handoff_target",
    "valid_handoff_targets"
]
