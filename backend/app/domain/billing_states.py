"""Billing lifecycle states and transition rules.

Pure domain functions. No DB access, fully deterministic.
"""

from datetime import datetime
from enum import StrEnum


class InvoicingMethod(StrEnum):
    MILESTONE = "milestone"
    COMPLETION = "completion"


class ProjectStatus(StrEnum):
    ONGOING = "ongoing"
    PAUSED = "paused"
    COMPLETED = "completed"


class TaskStatus(StrEnum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class InvoiceType(StrEnum):
    AUTO_MILESTONE = "auto_milestone"
    MANUAL_COMPLETION_TASK = "manual_completion_task"
    COMPLETION_UPFRONT = "completion_upfront"
    COMPLETION_FINAL = "completion_final"


class InvoiceStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"  # derived only, never stored


class PaymentPhase(StrEnum):
    """Completion-model payment phase."""

    NOT_ACTIVATED = "not_activated"
    UPFRONT_PAID = "upfront_paid"
    FINALIZED = "finalized"


TASK_TRANSITIONS: dict[TaskStatus, list[TaskStatus]] = {
    TaskStatus.PENDING: [TaskStatus.SUBMITTED],
    TaskStatus.SUBMITTED: [TaskStatus.IN_REVIEW, TaskStatus.APPROVED, TaskStatus.REJECTED],
    TaskStatus.IN_REVIEW: [TaskStatus.APPROVED, TaskStatus.REJECTED],
    TaskStatus.REJECTED: [TaskStatus.SUBMITTED],
    TaskStatus.APPROVED: [],  # Terminal
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, list[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: [InvoiceStatus.SENT, InvoiceStatus.CANCELLED],
    InvoiceStatus.SENT: [InvoiceStatus.PAID, InvoiceStatus.ON_HOLD, InvoiceStatus.CANCELLED],
    InvoiceStatus.ON_HOLD: [InvoiceStatus.SENT, InvoiceStatus.CANCELLED],
    InvoiceStatus.PAID: [],  # Terminal
    InvoiceStatus.CANCELLED: [],  # Terminal
}

PAYMENT_PHASE_TRANSITIONS: dict[PaymentPhase, list[PaymentPhase]] = {
    PaymentPhase.NOT_ACTIVATED: [PaymentPhase.UPFRONT_PAID],
    PaymentPhase.UPFRONT_PAID: [PaymentPhase.FINALIZED],
    PaymentPhase.FINALIZED: [],
}

# On-hold invoices must be released back to SENT before they can be paid
PAYABLE_STATUSES = frozenset({InvoiceStatus.SENT})

# System-issued invoices may not be withdrawn; a cancelled milestone share would
# leave the project short of its budget
NON_CANCELLABLE_TYPES = frozenset(
    {InvoiceType.AUTO_MILESTONE, InvoiceType.COMPLETION_UPFRONT, InvoiceType.COMPLETION_FINAL}
)


def can_transition_task(current: TaskStatus, target: TaskStatus) -> bool:
    return target in TASK_TRANSITIONS.get(current, [])


def can_transition_invoice(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in INVOICE_TRANSITIONS.get(current, [])


def can_advance_phase(current: PaymentPhase, target: PaymentPhase) -> bool:
    return target in PAYMENT_PHASE_TRANSITIONS.get(current, [])


def effective_invoice_status(status: InvoiceStatus, due_date: datetime | None, now: datetime) -> InvoiceStatus:
    """Status as presented to readers.

    A sent invoice past its due date reads as OVERDUE. The stored status
    stays SENT so payment can still settle it.
    """
    if status == InvoiceStatus.SENT and due_date is not None and now > due_date:
        return InvoiceStatus.OVERDUE
    return status
