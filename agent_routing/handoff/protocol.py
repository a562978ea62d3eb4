"""
Handoff protocol: who may transfer control to whom, and how a transfer is
validated, stamped, and recorded.

The coordinator is the hub. It may hand off to any specialist and every
specialist may return to it; specialists never hand off to each other and no
role hands off to itself.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from agent_routing.database.routing_store import RoutingStore
from agent_routing.exceptions import ValidationError
from agent_routing.routing.agent_profiles import get_display_name
from agent_routing.routing.route_engine import RoutingEngine
from agent_routing.routing.types import (
    AgentRole, COORDINATOR, RouteOptions, RoutingDecision, SPECIALISTS, is_specialist, parse_role
)
from agent_routing.utils.logging_config import log_handoff_event
from agent_routing.utils.monitoring import RoutingMetricsCollector

logger = logging.getLogger(__name__)

HANDOFF_METADATA_KEY = "_handoff"


class HandoffFailure(str, Enum):
    """Why execute_handoff refused a transfer."""
    DISALLOWED_TRANSITION = "disallowed_transition"
    UNKNOWN_AGENT = "unknown_agent"
    RESERVED_CONTEXT_KEY = "reserved_context_key"
    INVALID_REQUEST = "invalid_request"


@dataclass(frozen=True)
class Handoff:
    target_agent: Union[AgentRole, str]
    reason: str
    context: Dict[str, Any] = field(default_factory=dict)
    source_agent: Optional[Union[AgentRole, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_agent": _role_value(self.target_agent),
            "reason": self.reason,
            "context": dict(self.context),
            "source_agent": _role_value(self.source_agent) if self.source_agent else None
        }


@dataclass(frozen=True)
class HandoffRecord:
    """Append-only audit entry for one executed handoff."""
    handoff: Handoff
    from_agent: AgentRole
    user_id: str
    thread_id: Optional[str]
    timestamp: datetime


@dataclass
class HandoffDecision:
    should_handoff: bool
    routing_decision: RoutingDecision
    handoff: Optional[Handoff] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_handoff": self.should_handoff,
            "handoff": self.handoff.to_dict() if self.handoff else None,
            "routing_decision": self.routing_decision.to_dict()
        }


@dataclass
class HandoffResult:
    success: bool
    target_agent: str
    from_agent: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    record: Optional[HandoffRecord] = None
    failure_code: Optional[HandoffFailure] = None
    error: Optional[str] = None
    recorded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "target_agent": self.target_agent,
            "from_agent": self.from_agent,
            "context": self.context,
            "failure_code": self.failure_code.value if self.failure_code else None,
            "error": self.error,
            "recorded": self.recorded,
            "timestamp": self.record.timestamp.isoformat() if self.record else None
        }


def _role_value(role: Union[AgentRole, str, None]) -> Optional[str]:
    if role is None:
        return None
    return role.value if isinstance(role, AgentRole) else str(role)


def can_handoff(from_agent: AgentRole, to_agent: AgentRole) -> bool:
    """Pure transition predicate."""
    if from_agent is to_agent:
        return False
    if from_agent is COORDINATOR:
        return is_specialist(to_agent)
    return to_agent is COORDINATOR


def valid_handoff_targets(from_agent: AgentRole) -> List[AgentRole]:
    if from_agent is COORDINATOR:
        return list(SPECIALISTS)
    return [COORDINATOR]


def is_handoff_target(agent: Any) -> bool:
    """True for any value naming a role in the closed set."""
    try:
        parse_role(agent)
    except ValidationError:
        return False
    return True


def create_handoff(
    target_agent: Union[AgentRole, str],
    reason: str,
    context: Optional[Mapping[str, Any]] = None,
    source_agent: Optional[Union[AgentRole, str]] = None
) -> Handoff:
    """
    Build a validated Handoff.

    Raises:
        ValidationError: unknown role, empty reason, or a context using the
            reserved metadata key
    """
    target = parse_role(target_agent, "target_agent")
    source = parse_role(source_agent, "source_agent") if source_agent is not None else None
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Handoff reason must be a non-empty string", field="reason")

    context = dict(context or {})
    if HANDOFF_METADATA_KEY in context:
        raise ValidationError(
            f"Context key {HANDOFF_METADATA_KEY!r} is reserved for protocol metadata",
            field="context"
        )

    return Handoff(target_agent=target, reason=reason.strip(), context=context, source_agent=source)


def format_handoff_message(handoff: Handoff) -> str:
    """User-facing transfer notice. Keys starting with "_" stay hidden."""
    try:
        target_name = get_display_name(parse_role(handoff.target_agent))
    except ValidationError:
        target_name = str(handoff.target_agent)

    summary = ", ".join(
        f"{key}: {value}"
        for key, value in handoff.context.items()
        if not str(key).startswith("_")
    )
    context_part = f" ({summary})" if summary else ""
    return f"Transferring to {target_name}: {handoff.reason}{context_part}"


class HandoffProtocol:
    """Turns routing decisions into validated, recorded handoffs."""

    def __init__(
        self,
        engine: RoutingEngine,
        store: Optional[RoutingStore] = None,
        handoff_threshold: float = 0.7,
        metrics: Optional[RoutingMetricsCollector] = None
    ):
        self.engine = engine
        self.store = store
        self.handoff_threshold = handoff_threshold
        self.metrics = metrics

    async def decide_handoff(
        self,
        text: str,
        current_role: Union[AgentRole, str],
        options: Optional[RouteOptions] = None
    ) -> HandoffDecision:
        """
        Route ``text`` and decide whether control should move away from
        ``current_role``.

        Raises:
            ValidationError: empty text or unknown current_role
        """
        current = parse_role(current_role, "current_role")
        decision = await self.engine.route(text, current_role=current, options=options)
        target = decision.target_agent

        if target is current:
            logger.debug(f"No handoff: {current.value} already handles this request")
            return HandoffDecision(should_handoff=False, routing_decision=decision)

        if decision.confidence < self.handoff_threshold:
            logger.debug(
                f"No handoff to {target.value}: confidence {decision.confidence:.2f} "
                f"below {self.handoff_threshold}"
            )
            return HandoffDecision(should_handoff=False, routing_decision=decision)

        if not can_handoff(current, target):
            logger.debug(f"No handoff: {current.value} -> {target.value} is not allowed")
            return HandoffDecision(should_handoff=False, routing_decision=decision)

        handoff = Handoff(target_agent=target, reason=decision.rationale, source_agent=current)
        return HandoffDecision(should_handoff=True, routing_decision=decision, handoff=handoff)

    async def execute_handoff(
        self,
        handoff: Handoff,
        message: str,
        user_id: str,
        thread_id: Optional[str] = None,
        from_agent: Optional[Union[AgentRole, str]] = None
    ) -> HandoffResult:
        """
        Validate and stamp a handoff. Rejections come back as a failed
        HandoffResult with a failure code; nothing here raises for them.

        The source role comes from ``handoff.source_agent`` or ``from_agent``;
        at least one is required and they must agree.
        """
        target_value = _role_value(handoff.target_agent)

        try:
            target = parse_role(handoff.target_agent, "target_agent")
        except ValidationError as e:
            return await self._reject(handoff, target_value, None, HandoffFailure.UNKNOWN_AGENT, str(e), user_id, thread_id)

        try:
            declared = [parse_role(role, "from_agent")
                        for role in (handoff.source_agent, from_agent) if role is not None]
        except ValidationError as e:
            return await self._reject(handoff, target_value, None, HandoffFailure.UNKNOWN_AGENT, str(e), user_id, thread_id)

        if len(set(declared)) > 1:
            return await self._reject(
                handoff, target_value, declared[0].value, HandoffFailure.INVALID_REQUEST,
                f"Conflicting source agents: {declared[0].value} and {declared[1].value}",
                user_id, thread_id
            )
        if not declared:
            return await self._reject(
                handoff, target_value, None, HandoffFailure.INVALID_REQUEST,
                "from_agent is required to validate the transition", user_id, thread_id
            )
        source = declared[0]

        if not user_id or not str(user_id).strip():
            return await self._reject(
                handoff, target_value, source.value, HandoffFailure.INVALID_REQUEST,
                "user_id is required", user_id, thread_id
            )

        if not can_handoff(source, target):
            reason = (
                f"{source.value} cannot hand off to itself" if source is target
                else f"{source.value} -> {target.value} must go through {COORDINATOR.value}"
            )
            return await self._reject(
                handoff, target_value, source.value, HandoffFailure.DISALLOWED_TRANSITION,
                reason, user_id, thread_id
            )

        if HANDOFF_METADATA_KEY in handoff.context:
            return await self._reject(
                handoff, target_value, source.value, HandoffFailure.RESERVED_CONTEXT_KEY,
                f"Context key {HANDOFF_METADATA_KEY!r} is reserved", user_id, thread_id
            )

        timestamp = datetime.now(timezone.utc)
        context = dict(handoff.context)
        context[HANDOFF_METADATA_KEY] = {
            "reason": handoff.reason,
            "timestamp": timestamp.isoformat(),
            "user_id": user_id,
            "thread_id": thread_id,
            "from_agent": source.value,
            "to_agent": target.value
        }
        record = HandoffRecord(
            handoff=handoff,
            from_agent=source,
            user_id=user_id,
            thread_id=thread_id,
            timestamp=timestamp
        )

        recorded = await self._persist(
            from_agent=source.value,
            to_agent=target.value,
            reason=handoff.reason,
            context=handoff.context,
            message=message,
            user_id=user_id,
            thread_id=thread_id,
            success=True,
            failure_code=None,
            timestamp=timestamp
        )

        log_handoff_event(source.value, target.value, True, handoff.reason, user_id=user_id)
        if self.metrics:
            self.metrics.record_handoff(source.value, target.value, "accepted")

        return HandoffResult(
            success=True,
            target_agent=target.value,
            from_agent=source.value,
            context=context,
            record=record,
            recorded=recorded
        )

    async def _reject(
        self,
        handoff: Handoff,
        target_value: str,
        source_value: Optional[str],
        code: HandoffFailure,
        error: str,
        user_id: str,
        thread_id: Optional[str]
    ) -> HandoffResult:
        source_label = source_value or "unknown"
        log_handoff_event(source_label, target_value, False, handoff.reason,
                          user_id=user_id, failure_code=code.value)
        if self.metrics:
            self.metrics.record_handoff(source_label, target_value, code.value)

        recorded = False
        if user_id:
            recorded = await self._persist(
                from_agent=source_label,
                to_agent=target_value,
                reason=handoff.reason,
                context=handoff.context,
                message=None,
                user_id=user_id,
                thread_id=thread_id,
                success=False,
                failure_code=code.value,
                timestamp=datetime.now(timezone.utc)
            )

        return HandoffResult(
            success=False,
            target_agent=target_value,
            from_agent=source_value,
            failure_code=code,
            error=error,
            recorded=recorded
        )

    async def _persist(self, timestamp: datetime, **data) -> bool:
        """Append the audit row; a store outage does not undo the handoff."""
        if self.store is None:
            return False
        try:
            await self.store.record_handoff({
                **data,
                "timestamp": timestamp.replace(tzinfo=None)
            })
            return True
        except Exception as e:
            logger.error(f"Failed to record handoff {data.get('from_agent')} -> {data.get('to_agent')}: {e}")
            return False
