"""
Pydantic models for API request/response validation.

Role, source, and feedback-type fields are accepted as plain strings and
validated by the core so unknown values surface as the service's own
ValidationError (HTTP 400).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(str, Enum):
    """System health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class RouteRequest(BaseModel):
    """Request model for routing a message."""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "text": "ask the coder to review my PR",
            "current_role": "orchestrator",
            "user_id": "user-123"
        }
    })

    text: str = Field(..., min_length=1, max_length=4000, description="Message to route")
    current_role: Optional[str] = Field(default=None, description="Agent currently handling the conversation")
    skip_classifier: bool = Field(default=False, description="Never consult the LLM classifier")
    force_classifier: bool = Field(default=False, description="Consult the classifier even after a confident tier")
    keyword_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0.0, le=60.0)
    user_id: Optional[str] = Field(default=None, max_length=100)
    thread_id: Optional[str] = Field(default=None, max_length=100)


class RoutingDecisionResponse(BaseModel):
    target_agent: str
    confidence: float
    rationale: str
    source: str
    latency_ms: Optional[int] = None


class HandoffDecideRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=4000)
    current_role: str
    skip_classifier: bool = False
    timeout_seconds: Optional[float] = Field(default=None, gt=0.0, le=60.0)


class HandoffPayload(BaseModel):
    target_agent: str
    reason: str
    context: Dict[str, Any] = Field(default_factory=dict)
    source_agent: Optional[str] = None


class HandoffDecisionResponse(BaseModel):
    should_handoff: bool
    handoff: Optional[HandoffPayload] = None
    routing_decision: RoutingDecisionResponse
    handoff_message: Optional[str] = None


class HandoffExecuteRequest(BaseModel):
    """Request model for executing a handoff."""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "target_agent": "orchestrator",
            "reason": "Request is outside finance",
            "context": {"topic": "thermostat"},
            "message": "turn the heat up",
            "user_id": "user-123",
            "from_agent": "finance"
        }
    })

    target_agent: str
    reason: str = Field(..., min_length=1, max_length=1000)
    context: Dict[str, Any] = Field(default_factory=dict)
    message: str = Field(..., max_length=4000)
    user_id: str = Field(..., min_length=1, max_length=100)
    thread_id: Optional[str] = Field(default=None, max_length=100)
    from_agent: str


class HandoffResultResponse(BaseModel):
    success: bool
    target_agent: str
    from_agent: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    failure_code: Optional[str] = None
    error: Optional[str] = None
    recorded: bool = False
    timestamp: Optional[str] = None
    handoff_message: Optional[str] = None


class FeedbackRequest(BaseModel):
    """User correction of a routing decision."""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "original_query": "how much did I spend on groceries",
            "selected_agent": "researcher",
            "routing_confidence": 0.62,
            "routing_source": "classifier",
            "feedback_type": "incorrect",
            "correct_agent": "finance"
        }
    })

    original_query: str = Field(..., min_length=1, max_length=4000)
    selected_agent: str
    routing_confidence: float
    routing_source: str
    feedback_type: str
    correct_agent: Optional[str] = None
    user_comment: Optional[str] = Field(default=None, max_length=2000)
    user_id: Optional[str] = Field(default=None, max_length=100)
    thread_id: Optional[str] = Field(default=None, max_length=100)


class FeedbackResponse(BaseModel):
    id: int
    status: str = "accepted"


class RetireExamplesRequest(BaseModel):
    example_ids: List[int] = Field(..., min_length=1, max_length=1000)


class CorpusOperationResponse(BaseModel):
    count: int
    corpus_version: int


class ComponentHealth(BaseModel):
    name: str
    status: HealthStatus
    response_time: Optional[float] = None
    last_check: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    timestamp: datetime
    version: str
    uptime: float
    components: List[ComponentHealth]


class ErrorResponse(BaseModel):
    error: Dict[str, Any]
