"""Tests for the LLM classifier adapter and its response parsing."""

import pytest

from agent_routing.routing.classifier_oracle import (
    ClassifierOracle, MalformedResponse, build_system_prompt, parse_classifier_response
)
from agent_routing.routing.types import AgentRole, Deadline, RoutingSource
from agent_routing.utils.monitoring import RoutingMetricsCollector

from .conftest import ScriptedProvider, classifier_json


class TestParseClassifierResponse:

    def test_plain_json(self):
        decision = parse_classifier_response(classifier_json("finance", 0.82, "Spending question"))

        assert decision.target_agent is AgentRole.FINANCE
        assert decision.confidence == pytest.approx(0.82)
        assert decision.rationale == "Spending question"
        assert decision.source is RoutingSource.CLASSIFIER

    def test_strips_reasoning_and_code_fence(self):
        raw = (
            "<think>The user mentions a pull request.</think>\n"
            "```json\n" + classifier_json("coder", 0.9) + "\n```"
        )

        decision = parse_classifier_response(raw)

        assert decision.target_agent is AgentRole.CODER
        assert decision.confidence == pytest.approx(0.9)

    def test_missing_rationale_gets_default(self):
        decision = parse_classifier_response('{"agent": "home", "confidence": 1}')

        assert decision.rationale == "Classified as home"
        assert decision.confidence == 1.0

    @pytest.mark.parametrize("raw", [
        "",
        "I think this is for the coder",
        '{"agent": "plumber", "confidence": 0.9}',
        '{"agent": "coder", "confidence": 1.5}',
        '{"agent": "coder", "confidence": "high"}',
        '{"agent": "coder", "confidence": true}',
        '{"agent": "coder", "confidence": 0.9',
    ])
    def test_malformed_responses(self, raw):
        with pytest.raises(MalformedResponse):
            parse_classifier_response(raw)


class TestClassifierOracle:

    def test_system_prompt_lists_every_role(self):
        prompt = build_system_prompt()

        for role in AgentRole:
            assert f"**{role.value}**" in prompt

    async def test_valid_answer(self):
        provider = ScriptedProvider([classifier_json("researcher", 0.77)])
        oracle = ClassifierOracle(provider)

        decision = await oracle.classify("what happened today")

        assert decision.target_agent is AgentRole.RESEARCHER
        assert decision.source is RoutingSource.CLASSIFIER
        assert len(provider.calls) == 1

    async def test_retries_once_after_malformed_answer(self):
        provider = ScriptedProvider(["not json", classifier_json("home", 0.9)])
        oracle = ClassifierOracle(provider)

        decision = await oracle.classify("make it warmer")

        assert decision.target_agent is AgentRole.HOME
        assert len(provider.calls) == 2

    async def test_falls_back_after_single_retry(self):
        metrics = RoutingMetricsCollector()
        provider = ScriptedProvider([RuntimeError("503 from provider")])
        oracle = ClassifierOracle(provider, max_retries=1, fallback_confidence=0.5, metrics=metrics)

        decision = await oracle.classify("anything")

        assert len(provider.calls) == 2
        assert decision.target_agent is AgentRole.ORCHESTRATOR
        assert decision.source is RoutingSource.FALLBACK
        assert decision.confidence == 0.5
        assert "routing_tier_failures_total" in metrics.get_prometheus_metrics()

    async def test_retry_count_is_bounded(self):
        provider = ScriptedProvider(["garbage"])
        oracle = ClassifierOracle(provider, max_retries=10)

        await oracle.classify("anything")

        assert oracle.max_retries == 1
        assert len(provider.calls) == 2

    async def test_timeout_falls_back(self):
        provider = ScriptedProvider([classifier_json("coder", 0.9)], delay=1.0)
        oracle = ClassifierOracle(provider, timeout_seconds=0.05)

        decision = await oracle.classify("fix my code")

        assert decision.source is RoutingSource.FALLBACK
        assert "timeout" in decision.rationale

    async def test_expired_deadline_skips_provider(self):
        provider = ScriptedProvider([classifier_json("coder", 0.9)])
        oracle = ClassifierOracle(provider)

        decision = await oracle.classify("fix my code", Deadline(0))

        assert provider.calls == []
        assert decision.source is RoutingSource.FALLBACK
