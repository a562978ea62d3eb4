"""Tests for explicit agent addressing."""

import pytest

from agent_routing.routing.explicit_matcher import EXPLICIT_CONFIDENCE, ExplicitMentionMatcher
from agent_routing.routing.types import AgentRole, RoutingSource


@pytest.fixture
def matcher() -> ExplicitMentionMatcher:
    return ExplicitMentionMatcher()


class TestExplicitMentionMatcher:

    @pytest.mark.parametrize("text, expected", [
        ("ask the coder to review my PR", AgentRole.CODER),
        ("Have DevBot fix the failing test", AgentRole.CODER),
        ("let the researcher dig into this", AgentRole.RESEARCHER),
        ("get the secretary to book a room", AgentRole.SECRETARY),
        ("ask homebot to dim the lights", AgentRole.HOME),
        ("ask the finance advisor about my budget", AgentRole.FINANCE),
        ("have the image generator draw a cat", AgentRole.IMAGEGEN),
        ("@researcher what changed in python 3.13?", AgentRole.RESEARCHER),
        ("hey @Q8 how are you", AgentRole.PERSONALITY),
        ("ask the orchestrator to plan my day", AgentRole.ORCHESTRATOR),
    ])
    def test_recognizes_direct_address(self, matcher, text, expected):
        decision = matcher.match(text)

        assert decision is not None
        assert decision.target_agent is expected
        assert decision.source is RoutingSource.EXPLICIT
        assert decision.confidence >= EXPLICIT_CONFIDENCE

    @pytest.mark.parametrize("text", [
        "I'd like to ask about code reviews",
        "send it to bob@researcher.org",
        "the coder said it was fine",
        "hmm interesting",
        "I need to get home by six",
        "can you get finance numbers for Q3",
    ])
    def test_no_match_without_address(self, matcher, text):
        assert matcher.match(text) is None

    def test_earliest_mention_wins(self, matcher):
        decision = matcher.match("let finance check the numbers, then ask the coder to update the report")

        assert decision.target_agent is AgentRole.FINANCE

    def test_rationale_names_agent(self, matcher):
        decision = matcher.match("ask the coder to review my PR")

        assert decision.rationale == "Explicit request to use coder agent"

    def test_confidence_below_explicit_floor_rejected(self):
        with pytest.raises(ValueError):
            ExplicitMentionMatcher(confidence=0.9)
