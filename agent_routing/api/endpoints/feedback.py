import logging

from fastapi import APIRouter, Depends

from agent_routing.api.endpoints.routing import get_service
from agent_routing.api.models import FeedbackRequest, FeedbackResponse
from agent_routing.feedback.feedback_loop import FeedbackEntry
from agent_routing.service import RoutingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/feedback", response_model=FeedbackResponse, status_code=201)
async def submit_feedback(request: FeedbackRequest, service: RoutingService = Depends(get_service)):
    """
    Record a correction of a past routing decision. ``correct_agent`` is
    required for ``incorrect`` and ``improved`` feedback.
    """
    entry = FeedbackEntry.create(
        original_query=request.original_query,
        selected_agent=request.selected_agent,
        routing_confidence=request.routing_confidence,
        routing_source=request.routing_source,
        feedback_type=request.feedback_type,
        correct_agent=request.correct_agent,
        user_comment=request.user_comment,
        user_id=request.user_id,
        thread_id=request.thread_id
    )
    feedback_id = await service.feedback_loop.submit(entry)
    return FeedbackResponse(id=feedback_id)
