import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, func, or_, select, update

from agent_routing.database.connection import DatabaseManager, POINTER_ROW_ID
from agent_routing.database.schemas import (
    CorpusPointer, CorpusVersionRecord, HandoffRecordRow, RoutingDecisionRecord,
    RoutingExampleRecord, RoutingFeedbackRecord, utcnow
)
from agent_routing.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)


def _member_of(version: int):
    """SQL predicate: example is part of corpus ``version``."""
    return and_(
        RoutingExampleRecord.added_in_version <= version,
        or_(
            RoutingExampleRecord.retired_in_version.is_(None),
            RoutingExampleRecord.retired_in_version > version
        )
    )


class RoutingStore:
    """Durable store for examples, corpus versions, feedback, decisions and handoffs"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    # Corpus

    async def get_current_version(self) -> int:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(CorpusPointer.current_version).where(CorpusPointer.id == POINTER_ROW_ID)
            )
            version = result.scalar_one_or_none()
            return version if version is not None else 0

    async def load_examples(self, version: int, with_embeddings_only: bool = True) -> List[RoutingExampleRecord]:
        """All examples belonging to ``version``, ordered by id."""
        async with self.db.get_session() as session:
            stmt = select(RoutingExampleRecord).where(_member_of(version))
            if with_embeddings_only:
                stmt = stmt.where(RoutingExampleRecord.embedding.is_not(None))
            result = await session.execute(stmt.order_by(RoutingExampleRecord.id))
            return list(result.scalars().all())

    async def get_examples_missing_embeddings(self, version: int) -> List[RoutingExampleRecord]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(RoutingExampleRecord)
                .where(_member_of(version))
                .where(RoutingExampleRecord.embedding.is_(None))
                .order_by(RoutingExampleRecord.id)
            )
            return list(result.scalars().all())

    async def get_corpus_summary(self, version: int) -> Dict[str, Any]:
        """Example counts per label for one version."""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(
                    RoutingExampleRecord.label,
                    func.count(RoutingExampleRecord.id),
                    func.count(RoutingExampleRecord.embedding)
                )
                .where(_member_of(version))
                .group_by(RoutingExampleRecord.label)
            )
            by_label = {}
            missing = 0
            for label, total, embedded in result.all():
                by_label[label] = total
                missing += total - embedded

            version_row = await session.get(CorpusVersionRecord, version)

            return {
                "version": version,
                "examples_by_label": by_label,
                "total_examples": sum(by_label.values()),
                "missing_embeddings": missing,
                "published_at": version_row.created_at.isoformat() if version_row and version_row.created_at else None,
                "note": version_row.note if version_row else None
            }

    async def publish_version(
        self,
        expected_version: int,
        new_examples: Sequence[Dict[str, Any]] = (),
        retire_ids: Iterable[int] = (),
        embedding_updates: Optional[Dict[int, List[float]]] = None,
        processed_feedback_ids: Iterable[int] = (),
        note: Optional[str] = None
    ) -> int:
        """
        Publish ``expected_version + 1`` in one transaction: swap the pointer,
        apply the example changes, and mark feedback processed.

        Raises:
            ConcurrencyConflict: the pointer no longer holds ``expected_version``
        """
        new_version = expected_version + 1
        retire_ids = list(retire_ids)
        processed_feedback_ids = list(processed_feedback_ids)

        async with self.db.get_session() as session:
            swap = await session.execute(
                update(CorpusPointer)
                .where(CorpusPointer.id == POINTER_ROW_ID)
                .where(CorpusPointer.current_version == expected_version)
                .values(current_version=new_version, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if swap.rowcount == 0:
                await session.rollback()
                actual = await session.execute(
                    select(CorpusPointer.current_version).where(CorpusPointer.id == POINTER_ROW_ID)
                )
                raise ConcurrencyConflict(expected_version, actual.scalar_one_or_none())

            for example in new_examples:
                session.add(RoutingExampleRecord(
                    text=example["text"],
                    label=example["label"],
                    embedding=example.get("embedding"),
                    source_feedback_id=example.get("source_feedback_id"),
                    added_in_version=new_version
                ))

            if retire_ids:
                await session.execute(
                    update(RoutingExampleRecord)
                    .where(RoutingExampleRecord.id.in_(retire_ids))
                    .where(RoutingExampleRecord.retired_in_version.is_(None))
                    .values(retired_in_version=new_version)
                    .execution_options(synchronize_session=False)
                )

            for example_id, embedding in (embedding_updates or {}).items():
                await session.execute(
                    update(RoutingExampleRecord)
                    .where(RoutingExampleRecord.id == example_id)
                    .where(RoutingExampleRecord.embedding.is_(None))
                    .values(embedding=embedding)
                    .execution_options(synchronize_session=False)
                )

            if processed_feedback_ids:
                await session.execute(
                    update(RoutingFeedbackRecord)
                    .where(RoutingFeedbackRecord.id.in_(processed_feedback_ids))
                    .where(RoutingFeedbackRecord.processed_at.is_(None))
                    .values(processed_at=utcnow())
                    .execution_options(synchronize_session=False)
                )

            await session.flush()
            count = await session.execute(
                select(func.count(RoutingExampleRecord.id)).where(_member_of(new_version))
            )
            session.add(CorpusVersionRecord(
                version=new_version,
                example_count=count.scalar_one(),
                note=note
            ))

            await session.commit()

        logger.info(
            f"Published corpus version {new_version} "
            f"(+{len(new_examples)} examples, -{len(retire_ids)} retired, "
            f"{len(embedding_updates or {})} embeddings back-filled)"
        )
        return new_version

    # Feedback

    async def insert_feedback(self, data: Dict[str, Any]) -> int:
        async with self.db.get_session() as session:
            record = RoutingFeedbackRecord(**data)
            session.add(record)
            await session.commit()
            return record.id

    async def get_feedback(self, feedback_id: int) -> Optional[RoutingFeedbackRecord]:
        async with self.db.get_session() as session:
            return await session.get(RoutingFeedbackRecord, feedback_id)

    async def get_pending_feedback(self, feedback_types: Iterable[str], limit: Optional[int] = None) -> List[RoutingFeedbackRecord]:
        async with self.db.get_session() as session:
            stmt = (
                select(RoutingFeedbackRecord)
                .where(RoutingFeedbackRecord.processed_at.is_(None))
                .where(RoutingFeedbackRecord.feedback_type.in_(list(feedback_types)))
                .order_by(RoutingFeedbackRecord.id)
            )
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # Telemetry

    async def log_decision(
        self,
        query_text: str,
        target_agent: str,
        source: str,
        confidence: float,
        latency_ms: Optional[int] = None,
        current_role: Optional[str] = None,
        user_id: Optional[str] = None,
        thread_id: Optional[str] = None
    ):
        """Log a routing decision for stats"""
        async with self.db.get_session() as session:
            session.add(RoutingDecisionRecord(
                query_text=query_text,
                target_agent=target_agent,
                source=source,
                confidence=confidence,
                latency_ms=latency_ms,
                current_role=current_role,
                user_id=user_id,
                thread_id=thread_id
            ))
            await session.commit()

    async def record_handoff(self, data: Dict[str, Any]) -> int:
        async with self.db.get_session() as session:
            row = HandoffRecordRow(**data)
            session.add(row)
            await session.commit()
            return row.id

    async def get_decision_counts(self, since: datetime) -> Dict[str, Any]:
        """Decision counts per agent and per source since ``since``."""
        async with self.db.get_session() as session:
            by_agent = await session.execute(
                select(RoutingDecisionRecord.target_agent, func.count(RoutingDecisionRecord.id))
                .where(RoutingDecisionRecord.timestamp >= since)
                .group_by(RoutingDecisionRecord.target_agent)
            )
            by_source = await session.execute(
                select(RoutingDecisionRecord.source, func.count(RoutingDecisionRecord.id))
                .where(RoutingDecisionRecord.timestamp >= since)
                .group_by(RoutingDecisionRecord.source)
            )
            averages = await session.execute(
                select(
                    func.avg(RoutingDecisionRecord.confidence),
                    func.avg(RoutingDecisionRecord.latency_ms)
                ).where(RoutingDecisionRecord.timestamp >= since)
            )
            avg_confidence, avg_latency = averages.one()

            return {
                "by_agent": {agent: count for agent, count in by_agent.all()},
                "by_source": {source: count for source, count in by_source.all()},
                "avg_confidence": float(avg_confidence) if avg_confidence is not None else None,
                "avg_latency_ms": float(avg_latency) if avg_latency is not None else None
            }

    async def get_feedback_counts(self, since: datetime, pending_types: Iterable[str]) -> Dict[str, Any]:
        """Feedback counts per type since ``since`` plus the promotion backlog."""
        async with self.db.get_session() as session:
            by_type = await session.execute(
                select(RoutingFeedbackRecord.feedback_type, func.count(RoutingFeedbackRecord.id))
                .where(RoutingFeedbackRecord.created_at >= since)
                .group_by(RoutingFeedbackRecord.feedback_type)
            )
            pending = await session.execute(
                select(func.count(RoutingFeedbackRecord.id))
                .where(RoutingFeedbackRecord.processed_at.is_(None))
                .where(RoutingFeedbackRecord.feedback_type.in_(list(pending_types)))
            )
            return {
                "by_type": {feedback_type: count for feedback_type, count in by_type.all()},
                "pending": pending.scalar_one()
            }
