"""
Routing and handoff endpoints.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from agent_routing.api.models import (
    HandoffDecideRequest, HandoffDecisionResponse, HandoffExecuteRequest,
    HandoffResultResponse, RouteRequest, RoutingDecisionResponse
)
from agent_routing.handoff.protocol import Handoff, format_handoff_message
from agent_routing.routing.types import RouteOptions
from agent_routing.service import RoutingService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> RoutingService:
    return request.app.state.service


async def _log_decision(service: RoutingService, request: RouteRequest, decision, latency_ms: int):
    """Best-effort telemetry; routing never fails because the log write did."""
    try:
        await service.store.log_decision(
            query_text=request.text,
            target_agent=decision.target_agent.value,
            source=decision.source.value,
            confidence=decision.confidence,
            latency_ms=latency_ms,
            current_role=request.current_role,
            user_id=request.user_id,
            thread_id=request.thread_id
        )
    except Exception as e:
        logger.error(f"Failed to log routing decision: {e}")


@router.post("/route", response_model=RoutingDecisionResponse)
async def route_message(request: RouteRequest, service: RoutingService = Depends(get_service)):
    """
    Route a message to an agent.

    Tiers run in order (explicit mention, keyword, vector, classifier) and
    the first confident one wins; otherwise the orchestrator is returned.
    """
    start_time = time.time()
    decision = await service.engine.route(
        request.text,
        current_role=request.current_role,
        options=RouteOptions(
            skip_classifier=request.skip_classifier,
            force_classifier=request.force_classifier,
            keyword_threshold=request.keyword_threshold,
            timeout_seconds=request.timeout_seconds
        )
    )
    latency_ms = int((time.time() - start_time) * 1000)

    await _log_decision(service, request, decision, latency_ms)

    return RoutingDecisionResponse(**decision.to_dict(), latency_ms=latency_ms)


@router.post("/handoff/decide", response_model=HandoffDecisionResponse)
async def decide_handoff(request: HandoffDecideRequest, service: RoutingService = Depends(get_service)):
    """Decide whether the current agent should hand the conversation off."""
    result = await service.handoff_protocol.decide_handoff(
        request.text,
        request.current_role,
        options=RouteOptions(
            skip_classifier=request.skip_classifier,
            timeout_seconds=request.timeout_seconds
        )
    )
    payload = result.to_dict()
    if result.handoff:
        payload["handoff_message"] = format_handoff_message(result.handoff)
    return payload


@router.post("/handoff/execute", response_model=HandoffResultResponse)
async def execute_handoff(request: HandoffExecuteRequest, service: RoutingService = Depends(get_service)):
    """
    Validate and record a handoff. Disallowed transitions return 200 with
    ``success=false`` and a failure code.
    """
    handoff = Handoff(
        target_agent=request.target_agent,
        reason=request.reason,
        context=dict(request.context)
    )
    result = await service.handoff_protocol.execute_handoff(
        handoff,
        message=request.message,
        user_id=request.user_id,
        thread_id=request.thread_id,
        from_agent=request.from_agent
    )
    payload = result.to_dict()
    if result.success:
        payload["handoff_message"] = format_handoff_message(handoff)
    return payload


@router.get("/routing/stats")
async def routing_stats(
    days: Optional[int] = Query(default=None, ge=1, le=365),
    service: RoutingService = Depends(get_service)
):
    """Decision counts per agent and source, feedback accuracy, corpus status."""
    return await service.feedback_loop.get_routing_stats(days)
