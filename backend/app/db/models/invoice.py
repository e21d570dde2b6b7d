"""Invoice model: one payable unit of a project's budget."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, ForeignKey, Integer, String, Text

from app.db.base import Base
from app.db.types import Money, UTCDateTime


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_number = Column(String(100), nullable=False, unique=True)
    project_id = Column(String(64), ForeignKey("projects.id"), nullable=False, index=True)
    task_id = Column(String(64), ForeignKey("tasks.id"), nullable=True, index=True)

    invoice_type = Column(String(30), nullable=False)  # InvoiceType values
    total_amount = Column(Money, nullable=False)
    status = Column(String(20), nullable=False, default="draft")  # stored InvoiceStatus (never "overdue")
    request_key = Column(String(100), nullable=True, unique=True)  # client idempotency key for manual invoices

    issued_at = Column(UTCDateTime, nullable=True)  # set when sent
    due_date = Column(UTCDateTime, nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)

    # Wallet ledger settlement
    wallet_transaction_id = Column(String(100), nullable=True)
    payment_attempts = Column(Integer, nullable=False, default=0)
    last_payment_error = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))
