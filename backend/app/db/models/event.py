"""Event model: append-only log of billing and project occurrences."""

from sqlalchemy import JSON, BigInteger, Column, Index, Integer, String

from app.db.base import Base
from app.db.types import UTCDateTime


class Event(Base):
    __tablename__ = "events"

    # Auto-increment id doubles as the tie-breaker for equal timestamps
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(UTCDateTime, nullable=False)

    type = Column(String(100), nullable=False, index=True)  # open vocabulary
    notification_type = Column(Integer, nullable=False, default=0)  # derived, 0 = unclassified
    actor_id = Column(String(64), nullable=False, index=True)
    target_id = Column(String(64), nullable=True, index=True)
    entity_type = Column(Integer, nullable=False, default=0)
    entity_id = Column(String(100), nullable=False)

    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)
    context = Column(JSON, nullable=False, default=dict)  # projectId, taskId, invoiceId routing hints

    project_id = Column(String(64), nullable=True, index=True)  # denormalised from context for filtering
    # NO updated_at -- events are immutable (append-only)

    __table_args__ = (Index("ix_events_project_timestamp", "project_id", "timestamp", "id"),)
