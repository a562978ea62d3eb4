"""
LLM-backed intent classifier.

The oracle always answers: timeouts, provider errors, and malformed output
are retried at most ``max_retries`` times and then turned into a fallback
decision that points at the coordinator.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any, Dict, Optional

from agent_routing.exceptions import UpstreamError, UpstreamTimeout, ValidationError
from agent_routing.routing.agent_profiles import AGENT_PROFILES
from agent_routing.routing.types import (
    COORDINATOR, Deadline, RoutingDecision, RoutingSource, parse_role
)
from agent_routing.utils.llm_service import BaseLLMProvider
from agent_routing.utils.monitoring import RoutingMetricsCollector

logger = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_system_prompt() -> str:
    agent_lines = "\n".join(
        f"- **{role.value}**: {profile.description}"
        for role, profile in AGENT_PROFILES.items()
    )
    return f"""You are a routing classifier for a multi-agent AI assistant. Analyze the user's message and select the best agent.

## Available Agents

{agent_lines}

## Instructions

Select the agent most likely to successfully complete the user's task.
Consider the primary intent of the message.
If unclear or multi-faceted, choose {COORDINATOR.value}.

Respond with only a JSON object:
{{"agent": "<agent id>", "confidence": <number between 0 and 1>, "rationale": "<one sentence>"}}"""


class MalformedResponse(UpstreamError):
    """The classifier answered, but not with a usable decision."""

    def __init__(self, message: str):
        super().__init__("classifier", message)


def parse_classifier_response(raw: str) -> RoutingDecision:
    """
    Parse the provider's text into a classifier decision.

    Raises:
        MalformedResponse: not JSON, unknown agent, or confidence outside [0, 1]
    """
    if not raw or not raw.strip():
        raise MalformedResponse("empty response")

    cleaned = _THINK_BLOCK.sub("", raw).strip()
    cleaned = _CODE_FENCE.sub("", cleaned).strip()
    match = _JSON_OBJECT.search(cleaned)
    if not match:
        raise MalformedResponse(f"no JSON object in response: {cleaned[:80]!r}")

    try:
        payload: Dict[str, Any] = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"invalid JSON: {e}")

    if not isinstance(payload, dict):
        raise MalformedResponse("response is not a JSON object")

    try:
        agent = parse_role(payload.get("agent"), "agent")
    except ValidationError as e:
        raise MalformedResponse(str(e))

    confidence = payload.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise MalformedResponse(f"confidence is not a number: {confidence!r}")
    if not 0.0 <= confidence <= 1.0:
        raise MalformedResponse(f"confidence out of range: {confidence}")

    rationale = payload.get("rationale")
    if not isinstance(rationale, str) or not rationale.strip():
        rationale = f"Classified as {agent.value}"

    return RoutingDecision(
        target_agent=agent,
        confidence=float(confidence),
        rationale=rationale.strip(),
        source=RoutingSource.CLASSIFIER
    )


class ClassifierOracle:
    """Adapter between the routing engine and an LLM provider."""

    service_name = "classifier"

    def __init__(
        self,
        provider: BaseLLMProvider,
        timeout_seconds: float = 10.0,
        max_retries: int = 1,
        fallback_confidence: float = 0.5,
        metrics: Optional[RoutingMetricsCollector] = None
    ):
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        # No unbounded retry loops
        self.max_retries = max(0, min(max_retries, 1))
        self.fallback_confidence = fallback_confidence
        self.metrics = metrics
        self.system_prompt = build_system_prompt()

    def fallback(self, reason: str) -> RoutingDecision:
        return RoutingDecision(
            target_agent=COORDINATOR,
            confidence=self.fallback_confidence,
            rationale=f"Classifier unavailable ({reason}), defaulting to {COORDINATOR.value}",
            source=RoutingSource.FALLBACK
        )

    async def _attempt(self, text: str, timeout: float) -> RoutingDecision:
        try:
            raw = await asyncio.wait_for(
                self.provider.generate_response(text, system_prompt=self.system_prompt),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            raise UpstreamTimeout(self.service_name, timeout)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(self.service_name, str(e)) from e

        return parse_classifier_response(raw)

    async def classify(self, text: str, deadline: Optional[Deadline] = None) -> RoutingDecision:
        """Classify ``text``; never raises for upstream problems."""
        deadline = deadline or Deadline(None)
        start_time = time.time()
        last_error: Optional[UpstreamError] = None

        for attempt in range(self.max_retries + 1):
            timeout = deadline.clamp(self.timeout_seconds)
            if timeout is not None and timeout <= 0:
                last_error = last_error or UpstreamTimeout(self.service_name, 0.0)
                break

            try:
                decision = await self._attempt(text, timeout)
                logger.info(
                    f"Classifier routed to {decision.target_agent.value} "
                    f"({decision.confidence:.2f}) in {(time.time() - start_time) * 1000:.0f}ms"
                )
                return decision
            except UpstreamError as e:
                last_error = e
                reason = "timeout" if isinstance(e, UpstreamTimeout) else (
                    "malformed" if isinstance(e, MalformedResponse) else "upstream_error"
                )
                if self.metrics:
                    self.metrics.record_tier_failure("classifier", reason)
                logger.warning(
                    f"Classifier attempt {attempt + 1}/{self.max_retries + 1} failed: {e}"
                )

        elapsed_ms = (time.time() - start_time) * 1000
        logger.error(f"Classifier routing failed after {elapsed_ms:.0f}ms: {last_error}")
        reason = "timeout" if isinstance(last_error, UpstreamTimeout) else "error"
        return self.fallback(reason)
