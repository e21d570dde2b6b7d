"""Tests for billing lifecycle transitions (pure, no DB)."""

from datetime import UTC, datetime, timedelta

import pytest

from app.domain.billing_states import (
    NON_CANCELLABLE_TYPES,
    PAYABLE_STATUSES,
    InvoiceStatus,
    InvoiceType,
    PaymentPhase,
    TaskStatus,
    can_advance_phase,
    can_transition_invoice,
    can_transition_task,
    effective_invoice_status,
)

pytestmark = pytest.mark.unit

NOW = datetime(2025, 3, 3, tzinfo=UTC)


@pytest.mark.parametrize(
    "current,target",
    [
        (TaskStatus.PENDING, TaskStatus.SUBMITTED),
        (TaskStatus.SUBMITTED, TaskStatus.IN_REVIEW),
        (TaskStatus.SUBMITTED, TaskStatus.APPROVED),
        (TaskStatus.IN_REVIEW, TaskStatus.APPROVED),
        (TaskStatus.IN_REVIEW, TaskStatus.REJECTED),
        (TaskStatus.REJECTED, TaskStatus.SUBMITTED),
    ],
)
def test_allowed_task_transitions(current, target):
    assert can_transition_task(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (TaskStatus.PENDING, TaskStatus.APPROVED),
        (TaskStatus.REJECTED, TaskStatus.APPROVED),
        (TaskStatus.APPROVED, TaskStatus.REJECTED),
        (TaskStatus.APPROVED, TaskStatus.SUBMITTED),
    ],
)
def test_forbidden_task_transitions(current, target):
    assert not can_transition_task(current, target)


def test_task_status_accepts_stored_strings():
    assert can_transition_task("submitted", TaskStatus.APPROVED)


def test_invoice_transitions():
    assert can_transition_invoice(InvoiceStatus.DRAFT, InvoiceStatus.SENT)
    assert can_transition_invoice(InvoiceStatus.SENT, InvoiceStatus.ON_HOLD)
    assert can_transition_invoice(InvoiceStatus.ON_HOLD, InvoiceStatus.SENT)
    assert can_transition_invoice(InvoiceStatus.SENT, InvoiceStatus.PAID)
    assert not can_transition_invoice(InvoiceStatus.ON_HOLD, InvoiceStatus.PAID)
    assert not can_transition_invoice(InvoiceStatus.PAID, InvoiceStatus.CANCELLED)
    assert not can_transition_invoice(InvoiceStatus.CANCELLED, InvoiceStatus.SENT)


def test_only_sent_invoices_are_payable():
    assert PAYABLE_STATUSES == {InvoiceStatus.SENT}


def test_system_issued_invoices_are_not_cancellable():
    assert InvoiceType.AUTO_MILESTONE in NON_CANCELLABLE_TYPES
    assert InvoiceType.COMPLETION_UPFRONT in NON_CANCELLABLE_TYPES
    assert InvoiceType.COMPLETION_FINAL in NON_CANCELLABLE_TYPES
    assert InvoiceType.MANUAL_COMPLETION_TASK not in NON_CANCELLABLE_TYPES


def test_payment_phase_only_moves_forward():
    assert can_advance_phase(PaymentPhase.NOT_ACTIVATED, PaymentPhase.UPFRONT_PAID)
    assert can_advance_phase(PaymentPhase.UPFRONT_PAID, PaymentPhase.FINALIZED)
    assert not can_advance_phase(PaymentPhase.NOT_ACTIVATED, PaymentPhase.FINALIZED)
    assert not can_advance_phase(PaymentPhase.FINALIZED, PaymentPhase.UPFRONT_PAID)
    assert not can_advance_phase(None, PaymentPhase.FINALIZED)


def test_sent_invoice_past_due_reads_overdue():
    assert effective_invoice_status(InvoiceStatus.SENT, NOW - timedelta(seconds=1), NOW) == InvoiceStatus.OVERDUE
    assert effective_invoice_status(InvoiceStatus.SENT, NOW + timedelta(days=1), NOW) == InvoiceStatus.SENT


def test_paid_invoice_never_reads_overdue():
    assert effective_invoice_status(InvoiceStatus.PAID, NOW - timedelta(days=30), NOW) == InvoiceStatus.PAID
    assert effective_invoice_status(InvoiceStatus.DRAFT, None, NOW) == InvoiceStatus.DRAFT
