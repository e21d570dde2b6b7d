"""Task model: billable units owned by a project. Never deleted, only transitioned."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from app.db.base import Base
from app.db.types import UTCDateTime, Weeks


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(64), primary_key=True)
    project_id = Column(String(64), ForeignKey("projects.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # 1-based position in the project's task list
    title = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, default="pending")  # TaskStatus values
    completion = Column(Boolean, nullable=False, default=False)  # true only when approved
    version = Column(Integer, nullable=False, default=0)  # bumped on every submission

    # Mirrors the project duration fields so task due dates can be rebuilt independently
    task_activated_at = Column(UTCDateTime, nullable=False)
    original_task_duration_weeks = Column(Weeks, nullable=False)
    due_date = Column(UTCDateTime, nullable=False)

    submitted_at = Column(UTCDateTime, nullable=True)
    approved_at = Column(UTCDateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))
