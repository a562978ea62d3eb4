from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-naive UTC, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoutingExampleRecord(Base):
    """Labeled example for nearest-neighbor routing.

    Rows are never edited once published except to back-fill a missing
    embedding. Version membership is derived from added/retired columns.
    """
    __tablename__ = "routing_examples"

    id = Column(Integer, primary_key=True, index=True)
    text = Column(Text, nullable=False)
    embedding = Column(JSON(none_as_null=True), nullable=True)
    label = Column(String(32), nullable=False, index=True)
    added_in_version = Column(Integer, nullable=False, index=True)
    retired_in_version = Column(Integer, nullable=True, index=True)
    source_feedback_id = Column(Integer, unique=True, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('idx_example_membership', 'added_in_version', 'retired_in_version'),
    )


class CorpusVersionRecord(Base):
    """One row per published corpus version"""
    __tablename__ = "corpus_versions"

    version = Column(Integer, primary_key=True, autoincrement=False)
    example_count = Column(Integer, nullable=False, default=0)
    note = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class CorpusPointer(Base):
    """Single-row table naming the version readers should load"""
    __tablename__ = "corpus_pointer"

    id = Column(Integer, primary_key=True, autoincrement=False)
    current_version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class RoutingFeedbackRecord(Base):
    """User correction of a past routing decision (append-only audit trail)"""
    __tablename__ = "routing_feedback"

    id = Column(Integer, primary_key=True, index=True)
    original_query = Column(Text, nullable=False)
    selected_agent = Column(String(32), nullable=False, index=True)
    routing_confidence = Column(Float, nullable=False)
    routing_source = Column(String(20), nullable=False)
    feedback_type = Column(String(20), nullable=False, index=True)
    correct_agent = Column(String(32), nullable=True)
    user_comment = Column(Text, nullable=True)
    user_id = Column(String(100), nullable=True, index=True)
    thread_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    processed_at = Column(DateTime, nullable=True, index=True)

    __table_args__ = (
        Index('idx_feedback_pending', 'feedback_type', 'processed_at'),
    )


class RoutingDecisionRecord(Base):
    """Routing telemetry used by the stats endpoint"""
    __tablename__ = "routing_decisions"

    id = Column(Integer, primary_key=True, index=True)
    query_text = Column(Text, nullable=False)
    current_role = Column(String(32), nullable=True)
    target_agent = Column(String(32), nullable=False, index=True)
    source = Column(String(20), nullable=False, index=True)
    confidence = Column(Float, nullable=False)
    latency_ms = Column(Integer, nullable=True)
    user_id = Column(String(100), nullable=True)
    thread_id = Column(String(100), nullable=True)
    timestamp = Column(DateTime, default=utcnow, index=True)

    __table_args__ = (
        Index('idx_decision_agent_source', 'target_agent', 'source'),
    )


class HandoffRecordRow(Base):
    """Append-only handoff audit entry"""
    __tablename__ = "handoff_records"

    id = Column(Integer, primary_key=True, index=True)
    from_agent = Column(String(32), nullable=False)
    to_agent = Column(String(32), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    context = Column(JSON(none_as_null=True), nullable=True)
    message = Column(Text, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    failure_code = Column(String(40), nullable=True)
    user_id = Column(String(100), nullable=False, index=True)
    thread_id = Column(String(100), nullable=True)
    timestamp = Column(DateTime, default=utcnow, index=True)
