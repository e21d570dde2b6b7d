"""Project model: one billing record per activated project."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, Date, Integer, String, Text

from app.db.base import Base
from app.db.types import Money, UTCDateTime, Weeks


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(64), primary_key=True)
    title = Column(Text, nullable=False, default="")
    commissioner_id = Column(String(64), nullable=False, index=True)
    freelancer_id = Column(String(64), nullable=False, index=True)

    invoicing_method = Column(String(20), nullable=False)  # milestone, completion (immutable)
    total_budget = Column(Money, nullable=False)
    total_tasks = Column(Integer, nullable=False)

    # Duration guard inputs, captured once at activation
    gig_posted_date = Column(Date, nullable=True)  # informational only
    project_activated_at = Column(UTCDateTime, nullable=False)
    original_duration_weeks = Column(Weeks, nullable=False)
    original_estimated_hours = Column(Weeks, nullable=True)
    intended_start = Column(Date, nullable=True)
    intended_end = Column(Date, nullable=True)
    due_date = Column(UTCDateTime, nullable=False)

    status = Column(String(20), nullable=False, default="ongoing")  # ongoing, paused, completed
    payment_phase = Column(String(20), nullable=True)  # completion only: not_activated, upfront_paid, finalized
    upfront_paid = Column(Boolean, nullable=False, default=False)
    invoice_sequence = Column(Integer, nullable=False, default=0)

    completed_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))
