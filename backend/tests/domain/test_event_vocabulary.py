"""Tests for event type lookup tables."""

import pytest

from app.domain.events import (
    EntityType,
    EventType,
    NotificationType,
    entity_type_for,
    missing_metadata,
    notification_type_for,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "event_type,code",
    [
        (EventType.TASK_SUBMITTED, 1),
        (EventType.TASK_REJECTED_WITH_COMMENT, 4),
        (EventType.PROJECT_ACTIVATED, 22),
        (EventType.PROJECT_COMPLETED, 28),
        (EventType.INVOICE_SENT, 40),
        (EventType.MILESTONE_PAYMENT_RECEIVED, 42),
        (EventType.COMPLETION_PROJECT_ACTIVATED, 150),
        (EventType.COMPLETION_UPFRONT_PAYMENT, 151),
        (EventType.COMPLETION_FINAL_PAYMENT, 156),
    ],
)
def test_notification_codes(event_type, code):
    assert notification_type_for(event_type) == code


@pytest.mark.parametrize(
    "event_type",
    [
        EventType.TASK_CREATED,
        EventType.PROJECT_CREATED,
        EventType.INVOICE_ON_HOLD,
        EventType.INVOICE_PAYMENT_FAILED,
        "message_sent",
        "something_new",
    ],
)
def test_log_only_and_unknown_types_are_unclassified(event_type):
    assert notification_type_for(event_type) == NotificationType.UNCLASSIFIED


def test_entity_type_lookup_is_case_insensitive():
    assert entity_type_for("Invoice") == EntityType.INVOICE
    assert entity_type_for("task") == EntityType.TASK
    assert entity_type_for(None) == EntityType.UNKNOWN
    assert entity_type_for("spaceship") == EntityType.UNKNOWN


def test_missing_metadata_for_known_type():
    assert missing_metadata(EventType.INVOICE_SENT, {"invoiceNumber": "INV-1"}) == ["amount", "invoiceType"]
    assert missing_metadata(EventType.COMPLETION_UPFRONT_PAYMENT, None) == [
        "invoiceNumber",
        "remainingBudget",
        "upfrontAmount",
    ]


def test_none_values_count_as_missing():
    assert missing_metadata(EventType.TASK_APPROVED, {"taskTitle": None}) == ["taskTitle"]


def test_unknown_types_carry_any_metadata():
    assert missing_metadata("custom_event", {}) == []
