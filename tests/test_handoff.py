"""Tests for the handoff state machine, validation, and audit trail."""

import itertools

import pytest
from sqlalchemy import select

from agent_routing.database.schemas import HandoffRecordRow
from agent_routing.exceptions import ValidationError
from agent_routing.handoff.protocol import (
    HANDOFF_METADATA_KEY, Handoff, HandoffFailure, HandoffProtocol, can_handoff,
    create_handoff, format_handoff_message, is_handoff_target, valid_handoff_targets
)
from agent_routing.routing.route_engine import RoutingEngine
from agent_routing.routing.types import AgentRole, COORDINATOR, SPECIALISTS


class FailingStore:
    async def record_handoff(self, data):
        raise ConnectionError("database is down")


@pytest.fixture
def protocol(store) -> HandoffProtocol:
    return HandoffProtocol(engine=RoutingEngine(), store=store, handoff_threshold=0.7)


async def stored_handoffs(store):
    async with store.db.get_session() as session:
        result = await session.execute(select(HandoffRecordRow).order_by(HandoffRecordRow.id))
        return list(result.scalars().all())


class TestTransitions:

    @pytest.mark.parametrize("role", list(AgentRole))
    def test_no_self_handoff(self, role):
        assert can_handoff(role, role) is False

    @pytest.mark.parametrize("specialist", SPECIALISTS)
    def test_hub_and_spoke(self, specialist):
        assert can_handoff(COORDINATOR, specialist) is True
        assert can_handoff(specialist, COORDINATOR) is True

    def test_specialists_never_hand_off_to_each_other(self):
        for source, target in itertools.permutations(SPECIALISTS, 2):
            assert can_handoff(source, target) is False

    def test_valid_targets(self):
        assert valid_handoff_targets(COORDINATOR) == list(SPECIALISTS)
        assert valid_handoff_targets(AgentRole.FINANCE) == [COORDINATOR]

    @pytest.mark.parametrize("value, expected", [
        ("coder", True), (" Finance ", True), (AgentRole.HOME, True),
        ("plumber", False), (3, False), (None, False),
    ])
    def test_is_handoff_target(self, value, expected):
        assert is_handoff_target(value) is expected


class TestCreateHandoff:

    def test_builds_typed_handoff(self):
        handoff = create_handoff("coder", "  needs a code review ", {"repo": "api"}, source_agent="orchestrator")

        assert handoff.target_agent is AgentRole.CODER
        assert handoff.source_agent is AgentRole.ORCHESTRATOR
        assert handoff.reason == "needs a code review"

    @pytest.mark.parametrize("kwargs", [
        {"target_agent": "plumber", "reason": "x"},
        {"target_agent": "coder", "reason": "  "},
        {"target_agent": "coder", "reason": "x", "context": {HANDOFF_METADATA_KEY: {}}},
        {"target_agent": "coder", "reason": "x", "source_agent": "intern"},
    ])
    def test_rejects_invalid_input(self, kwargs):
        with pytest.raises(ValidationError):
            create_handoff(**kwargs)

    def test_format_message_hides_private_keys(self):
        handoff = Handoff(
            target_agent=AgentRole.CODER,
            reason="Needs code review",
            context={"repo": "api", "_trace": "abc"}
        )

        assert format_handoff_message(handoff) == "Transferring to DevBot: Needs code review (repo: api)"

    def test_format_message_without_context(self):
        handoff = Handoff(target_agent=AgentRole.ORCHESTRATOR, reason="Out of scope")

        assert format_handoff_message(handoff) == "Transferring to Q8 Orchestrator: Out of scope"


class TestDecideHandoff:

    async def test_coordinator_hands_off_to_confident_specialist(self, protocol):
        result = await protocol.decide_handoff("turn off the living room lights", "orchestrator")

        assert result.should_handoff is True
        assert result.handoff.target_agent is AgentRole.HOME
        assert result.handoff.source_agent is AgentRole.ORCHESTRATOR
        assert result.handoff.reason == result.routing_decision.rationale

    async def test_same_role_does_not_hand_off(self, protocol):
        result = await protocol.decide_handoff("turn off the living room lights", AgentRole.HOME)

        assert result.should_handoff is False
        assert result.handoff is None
        assert result.routing_decision.target_agent is AgentRole.HOME

    async def test_low_confidence_does_not_hand_off(self, protocol):
        result = await protocol.decide_handoff("hmm interesting", "coder")

        assert result.should_handoff is False
        assert result.routing_decision.confidence < 0.7

    async def test_specialist_to_specialist_is_not_proposed(self, protocol):
        result = await protocol.decide_handoff("turn off the living room lights", "finance")

        assert result.should_handoff is False
        assert result.routing_decision.target_agent is AgentRole.HOME

    async def test_unknown_current_role(self, protocol):
        with pytest.raises(ValidationError):
            await protocol.decide_handoff("turn off the lights", "janitor")

    async def test_to_dict(self, protocol):
        result = await protocol.decide_handoff("turn off the living room lights", "orchestrator")

        payload = result.to_dict()
        assert payload["should_handoff"] is True
        assert payload["handoff"]["target_agent"] == "home"
        assert payload["routing_decision"]["source"] == "keyword"


class TestExecuteHandoff:

    async def test_accepted_handoff_stamps_metadata(self, protocol, store):
        handoff = Handoff(target_agent=AgentRole.CODER, reason="PR review", context={"repo": "api"},
                          source_agent=AgentRole.ORCHESTRATOR)

        result = await protocol.execute_handoff(handoff, "please review", user_id="user-1", thread_id="t-9")

        assert result.success is True
        assert result.recorded is True
        assert result.context["repo"] == "api"
        metadata = result.context[HANDOFF_METADATA_KEY]
        assert metadata["from_agent"] == "orchestrator"
        assert metadata["to_agent"] == "coder"
        assert metadata["reason"] == "PR review"
        assert metadata["user_id"] == "user-1"
        assert metadata["thread_id"] == "t-9"
        assert HANDOFF_METADATA_KEY not in handoff.context

        rows = await stored_handoffs(store)
        assert len(rows) == 1
        assert rows[0].success is True
        assert rows[0].context == {"repo": "api"}
        assert rows[0].message == "please review"

    async def test_missing_source_rejected(self, protocol, store):
        result = await protocol.execute_handoff(
            Handoff(target_agent=AgentRole.HOME, reason="thermostat"), "turn the heat up", user_id="user-1"
        )

        assert result.success is False
        assert result.failure_code is HandoffFailure.INVALID_REQUEST
        assert result.from_agent is None
        assert "from_agent is required" in result.error

        rows = await stored_handoffs(store)
        assert rows[0].success is False
        assert rows[0].failure_code == "invalid_request"

    async def test_escalation_with_caller_source(self, protocol):
        result = await protocol.execute_handoff(
            Handoff(target_agent="orchestrator", reason="outside finance"), "turn the heat up",
            user_id="user-1", from_agent="finance"
        )

        assert result.success is True
        assert result.from_agent == "finance"
        assert result.context[HANDOFF_METADATA_KEY]["to_agent"] == "orchestrator"

    async def test_specialist_to_specialist_rejected(self, protocol, store):
        handoff = Handoff(target_agent=AgentRole.HOME, reason="thermostat", source_agent=AgentRole.FINANCE)

        result = await protocol.execute_handoff(handoff, "turn the heat up", user_id="user-1")

        assert result.success is False
        assert result.failure_code is HandoffFailure.DISALLOWED_TRANSITION
        assert "must go through orchestrator" in result.error
        assert result.context is None

        rows = await stored_handoffs(store)
        assert rows[0].success is False
        assert rows[0].failure_code == "disallowed_transition"

    async def test_self_handoff_rejected(self, protocol):
        result = await protocol.execute_handoff(
            Handoff(target_agent="coder", reason="again"), "hi", user_id="user-1", from_agent="coder"
        )

        assert result.failure_code is HandoffFailure.DISALLOWED_TRANSITION

    async def test_unknown_target_rejected(self, protocol):
        result = await protocol.execute_handoff(Handoff(target_agent="plumber", reason="leak"), "help", user_id="u")

        assert result.success is False
        assert result.failure_code is HandoffFailure.UNKNOWN_AGENT
        assert result.target_agent == "plumber"

    async def test_reserved_context_key_rejected(self, protocol):
        handoff = Handoff(target_agent="coder", reason="x", context={HANDOFF_METADATA_KEY: "spoofed"})

        result = await protocol.execute_handoff(handoff, "hi", user_id="user-1", from_agent="orchestrator")

        assert result.failure_code is HandoffFailure.RESERVED_CONTEXT_KEY

    async def test_conflicting_source_rejected(self, protocol):
        handoff = Handoff(target_agent="orchestrator", reason="x", source_agent="finance")

        result = await protocol.execute_handoff(handoff, "hi", user_id="user-1", from_agent="coder")

        assert result.failure_code is HandoffFailure.INVALID_REQUEST

    async def test_missing_user_rejected_without_record(self, protocol, store):
        result = await protocol.execute_handoff(
            Handoff(target_agent="coder", reason="x"), "hi", user_id="", from_agent="orchestrator"
        )

        assert result.failure_code is HandoffFailure.INVALID_REQUEST
        assert result.recorded is False
        assert await stored_handoffs(store) == []

    async def test_store_outage_does_not_undo_handoff(self):
        protocol = HandoffProtocol(engine=RoutingEngine(), store=FailingStore())

        result = await protocol.execute_handoff(
            Handoff(target_agent="coder", reason="x"), "hi", user_id="user-1", from_agent="orchestrator"
        )

        assert result.success is True
        assert result.recorded is False

    async def test_result_to_dict(self, protocol):
        result = await protocol.execute_handoff(
            Handoff(target_agent="coder", reason="x"), "hi", user_id="user-1", from_agent="orchestrator"
        )

        payload = result.to_dict()
        assert payload["success"] is True
        assert payload["failure_code"] is None
        assert payload["timestamp"] is not None
