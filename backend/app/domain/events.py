"""Event vocabulary and static lookup tables for the event log.

Event `type` is an open string vocabulary. `notification_type` and
`entity_type` are closed integer codes assigned here; unknown types map to
UNCLASSIFIED (0), which the notification projector logs but never surfaces.
"""

from enum import IntEnum


class EventType:
    """Event type constants emitted by the billing engine."""

    # Tasks
    TASK_CREATED = "task_created"
    TASK_SUBMITTED = "task_submitted"
    TASK_APPROVED = "task_approved"
    TASK_REJECTED = "task_rejected"
    TASK_REJECTED_WITH_COMMENT = "task_rejected_with_comment"

    # Projects
    PROJECT_CREATED = "project_created"
    PROJECT_ACTIVATED = "project_activated"
    PROJECT_PAUSED = "project_paused"
    PROJECT_RESUMED = "project_resumed"
    PROJECT_COMPLETED = "project_completed"

    # Invoices
    INVOICE_SENT = "invoice_sent"
    INVOICE_PAID = "invoice_paid"
    INVOICE_CANCELLED = "invoice_cancelled"
    INVOICE_ON_HOLD = "invoice_on_hold"
    INVOICE_RELEASED = "invoice_released"
    INVOICE_PAYMENT_FAILED = "invoice_payment_failed"
    MILESTONE_PAYMENT_RECEIVED = "milestone_payment_received"

    # Completion-based invoicing
    COMPLETION_PROJECT_ACTIVATED = "completion.project_activated"
    COMPLETION_UPFRONT_PAYMENT = "completion.upfront_payment"
    COMPLETION_TASK_APPROVED = "completion.task_approved"
    COMPLETION_INVOICE_RECEIVED = "completion.invoice_received"
    COMPLETION_INVOICE_PAID = "completion.invoice_paid"
    COMPLETION_PROJECT_COMPLETED = "completion.project_completed"
    COMPLETION_FINAL_PAYMENT = "completion.final_payment"
    COMPLETION_RATING_PROMPT = "completion.rating_prompt"


class NotificationType(IntEnum):
    UNCLASSIFIED = 0

    # Tasks (1-19)
    TASK_SUBMITTED = 1
    TASK_APPROVED = 2
    TASK_REJECTED = 3
    TASK_REJECTED_WITH_COMMENT = 4
    TASK_COMPLETED = 5
    TASK_ASSIGNED = 6
    TASK_COMMENTED = 7

    # Projects (20-39)
    PROJECT_CREATED = 20
    PROJECT_STARTED = 21
    PROJECT_ACTIVATED = 22
    PROJECT_PAUSE_REQUESTED = 23
    PROJECT_PAUSE_ACCEPTED = 24
    PROJECT_PAUSE_REFUSED = 25
    PROJECT_PAUSED = 26
    PROJECT_PAUSE_REMINDER = 27
    PROJECT_COMPLETED = 28
    PROJECT_MILESTONE_REACHED = 29

    # Invoices (40-59)
    INVOICE_SENT = 40
    INVOICE_PAID = 41
    MILESTONE_PAYMENT_RECEIVED = 42
    INVOICE_OVERDUE = 43
    INVOICE_CANCELLED = 44

    # Gigs (60-79)
    GIG_APPLICATION_RECEIVED = 60
    GIG_REQUEST_SENT = 61
    GIG_REQUEST_ACCEPTED = 62

    # Proposals (80-99)
    PROPOSAL_SENT = 80
    PROPOSAL_ACCEPTED = 81
    PROPOSAL_REJECTED = 82

    # Storefront (100-119)
    PRODUCT_PURCHASED = 100
    STOREFRONT_SALE = 101
    PRODUCT_APPROVED = 102
    PRODUCT_REJECTED = 103

    # System (120-139)
    SYSTEM_MAINTENANCE = 120
    ACCOUNT_VERIFIED = 121

    # Ratings (140-149)
    RATING_PROMPT_FREELANCER = 140
    RATING_PROMPT_COMMISSIONER = 141

    # Completion-based invoicing (150-159)
    COMPLETION_PROJECT_ACTIVATED = 150
    COMPLETION_UPFRONT_PAYMENT = 151
    COMPLETION_TASK_APPROVED = 152
    COMPLETION_INVOICE_RECEIVED = 153
    COMPLETION_INVOICE_PAID = 154
    COMPLETION_PROJECT_COMPLETED = 155
    COMPLETION_FINAL_PAYMENT = 156
    COMPLETION_RATING_PROMPT = 157


class EntityType(IntEnum):
    UNKNOWN = 0
    TASK = 1
    PROJECT = 2
    GIG = 3
    MESSAGE = 4
    INVOICE = 5
    PRODUCT = 6
    PROPOSAL = 7
    USER = 8
    ORGANIZATION = 9
    MILESTONE = 10


# Types absent from this table (task_created, project_created, message_sent,
# payment bookkeeping, ...) are logged as UNCLASSIFIED and never surfaced.
NOTIFICATION_TYPE_BY_EVENT: dict[str, NotificationType] = {
    # Tasks
    EventType.TASK_SUBMITTED: NotificationType.TASK_SUBMITTED,
    EventType.TASK_APPROVED: NotificationType.TASK_APPROVED,
    EventType.TASK_REJECTED: NotificationType.TASK_REJECTED,
    EventType.TASK_REJECTED_WITH_COMMENT: NotificationType.TASK_REJECTED_WITH_COMMENT,
    "task_completed": NotificationType.TASK_COMPLETED,
    "task_commented": NotificationType.TASK_COMMENTED,
    # Projects
    "project_started": NotificationType.PROJECT_STARTED,
    EventType.PROJECT_ACTIVATED: NotificationType.PROJECT_ACTIVATED,
    "project_reactivated": NotificationType.PROJECT_STARTED,
    EventType.PROJECT_RESUMED: NotificationType.PROJECT_STARTED,
    "project_pause_requested": NotificationType.PROJECT_PAUSE_REQUESTED,
    "project_pause_accepted": NotificationType.PROJECT_PAUSE_ACCEPTED,
    "project_pause_refused": NotificationType.PROJECT_PAUSE_REFUSED,
    "project_pause_denied": NotificationType.PROJECT_PAUSE_REFUSED,
    EventType.PROJECT_PAUSED: NotificationType.PROJECT_PAUSED,
    "project_pause_reminder": NotificationType.PROJECT_PAUSE_REMINDER,
    EventType.PROJECT_COMPLETED: NotificationType.PROJECT_COMPLETED,
    # Invoices
    "invoice_created": NotificationType.INVOICE_SENT,
    EventType.INVOICE_SENT: NotificationType.INVOICE_SENT,
    EventType.INVOICE_PAID: NotificationType.INVOICE_PAID,
    EventType.MILESTONE_PAYMENT_RECEIVED: NotificationType.MILESTONE_PAYMENT_RECEIVED,
    "invoice_overdue": NotificationType.INVOICE_OVERDUE,
    EventType.INVOICE_CANCELLED: NotificationType.INVOICE_CANCELLED,
    # Gigs
    "gig_applied": NotificationType.GIG_APPLICATION_RECEIVED,
    "gig_request_sent": NotificationType.GIG_REQUEST_SENT,
    "gig_request_accepted": NotificationType.GIG_REQUEST_ACCEPTED,
    # Proposals
    "proposal_sent": NotificationType.PROPOSAL_SENT,
    "proposal_accepted": NotificationType.PROPOSAL_ACCEPTED,
    "proposal_rejected": NotificationType.PROPOSAL_REJECTED,
    # Storefront
    "product_purchased": NotificationType.PRODUCT_PURCHASED,
    "product_approved": NotificationType.PRODUCT_APPROVED,
    "product_rejected": NotificationType.PRODUCT_REJECTED,
    # Ratings
    "rating_prompt_freelancer": NotificationType.RATING_PROMPT_FREELANCER,
    "rating_prompt_commissioner": NotificationType.RATING_PROMPT_COMMISSIONER,
    # Completion-based invoicing
    EventType.COMPLETION_PROJECT_ACTIVATED: NotificationType.COMPLETION_PROJECT_ACTIVATED,
    EventType.COMPLETION_UPFRONT_PAYMENT: NotificationType.COMPLETION_UPFRONT_PAYMENT,
    EventType.COMPLETION_TASK_APPROVED: NotificationType.COMPLETION_TASK_APPROVED,
    EventType.COMPLETION_INVOICE_RECEIVED: NotificationType.COMPLETION_INVOICE_RECEIVED,
    EventType.COMPLETION_INVOICE_PAID: NotificationType.COMPLETION_INVOICE_PAID,
    EventType.COMPLETION_PROJECT_COMPLETED: NotificationType.COMPLETION_PROJECT_COMPLETED,
    EventType.COMPLETION_FINAL_PAYMENT: NotificationType.COMPLETION_FINAL_PAYMENT,
    EventType.COMPLETION_RATING_PROMPT: NotificationType.COMPLETION_RATING_PROMPT,
}

ENTITY_TYPE_BY_NAME: dict[str, EntityType] = {
    "task": EntityType.TASK,
    "project": EntityType.PROJECT,
    "gig": EntityType.GIG,
    "message": EntityType.MESSAGE,
    "invoice": EntityType.INVOICE,
    "product": EntityType.PRODUCT,
    "proposal": EntityType.PROPOSAL,
    "user": EntityType.USER,
    "organization": EntityType.ORGANIZATION,
    "milestone": EntityType.MILESTONE,
}

# Metadata keys each known type must carry. Unknown types carry anything.
REQUIRED_METADATA: dict[str, frozenset[str]] = {
    EventType.PROJECT_ACTIVATED: frozenset({"dueDate", "totalTasks", "invoicingMethod"}),
    EventType.COMPLETION_PROJECT_ACTIVATED: frozenset({"dueDate", "totalTasks", "invoicingMethod"}),
    EventType.COMPLETION_UPFRONT_PAYMENT: frozenset({"upfrontAmount", "remainingBudget", "invoiceNumber"}),
    EventType.TASK_APPROVED: frozenset({"taskTitle"}),
    EventType.COMPLETION_TASK_APPROVED: frozenset({"taskTitle"}),
    EventType.TASK_REJECTED_WITH_COMMENT: frozenset({"taskTitle", "rejectionComment"}),
    EventType.INVOICE_SENT: frozenset({"invoiceNumber", "amount", "invoiceType"}),
    EventType.INVOICE_PAID: frozenset({"invoiceNumber", "amount"}),
    EventType.INVOICE_CANCELLED: frozenset({"invoiceNumber", "amount"}),
    EventType.INVOICE_PAYMENT_FAILED: frozenset({"invoiceNumber", "amount", "error"}),
    EventType.MILESTONE_PAYMENT_RECEIVED: frozenset({"invoiceNumber", "amount"}),
    EventType.COMPLETION_INVOICE_RECEIVED: frozenset({"invoiceNumber", "amount", "remainingBudget"}),
    EventType.COMPLETION_INVOICE_PAID: frozenset({"invoiceNumber", "amount"}),
    EventType.COMPLETION_FINAL_PAYMENT: frozenset({"invoiceNumber", "finalAmount"}),
    EventType.COMPLETION_RATING_PROMPT: frozenset({"projectTitle", "counterpartyId"}),
}


def notification_type_for(event_type: str) -> NotificationType:
    """Notification code for an event type; UNCLASSIFIED when unmapped."""
    return NOTIFICATION_TYPE_BY_EVENT.get(event_type, NotificationType.UNCLASSIFIED)


def entity_type_for(entity_name: str | None) -> EntityType:
    if not entity_name:
        return EntityType.UNKNOWN
    return ENTITY_TYPE_BY_NAME.get(entity_name.lower(), EntityType.UNKNOWN)


def missing_metadata(event_type: str, metadata: dict | None) -> list[str]:
    """Required metadata keys absent for a known event type, sorted."""
    required = REQUIRED_METADATA.get(event_type, frozenset())
    present = metadata or {}
    return sorted(key for key in required if present.get(key) is None)
