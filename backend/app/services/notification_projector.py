"""NotificationProjector: read-side view deriving notifications from events.

Pure transformation over stored events: never mutates the event log and never
raises on missing optional fields. Events with notification_type 0 are logged
only and produce no notification.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.event import Event
from app.domain.events import EventType, NotificationType
from app.schemas.notifications import NotificationRecord

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Template:
    title: Callable[[dict], str]
    message: Callable[[dict], str]
    link: Callable[[dict], str]
    icon: str
    priority: str = "medium"


def _amount(meta: dict, key: str = "amount") -> str:
    value = meta.get(key)
    return f"${value}" if value is not None else "$0"


def _project_link(meta: dict) -> str:
    project_id = meta.get("projectId")
    return f"/projects/{project_id}" if project_id else "/projects"


def _invoice_link(meta: dict) -> str:
    number = meta.get("invoiceNumber")
    return f"/invoices/{number}" if number else "/invoices"


TEMPLATES: dict[str, _Template] = {
    EventType.TASK_SUBMITTED: _Template(
        title=lambda m: "New task submission",
        message=lambda m: f'"{m.get("taskTitle", "Task")}" is awaiting your review',
        link=_project_link,
        icon="/icons/task-submission.png",
    ),
    EventType.TASK_APPROVED: _Template(
        title=lambda m: "Task approved",
        message=lambda m: (
            f'Your submission of "{m.get("taskTitle", "Task")}" for {m.get("projectTitle") or "this project"} '
            f'was approved. {m.get("remainingTasks", 0)} milestone(s) left.'
        ),
        link=_project_link,
        icon="/icons/task-approved.png",
    ),
    EventType.TASK_REJECTED: _Template(
        title=lambda m: "Task rejected",
        message=lambda m: f'"{m.get("taskTitle", "Task")}" needs revisions before it can be approved',
        link=_project_link,
        icon="/icons/task-rejected.png",
        priority="high",
    ),
    EventType.TASK_REJECTED_WITH_COMMENT: _Template(
        title=lambda m: "Task rejected with feedback",
        message=lambda m: f'"{m.get("taskTitle", "Task")}" was rejected: {m.get("rejectionComment") or "no comment given"}',
        link=_project_link,
        icon="/icons/task-rejected.png",
        priority="high",
    ),
    EventType.PROJECT_ACTIVATED: _Template(
        title=lambda m: f'{m.get("projectTitle") or "Project"} is now active',
        message=lambda m: (
            f'{m.get("projectTitle") or "Project"} is active with {m.get("totalTasks", 0)} milestone(s) '
            f'due by {m.get("dueDate", "the deadline")}'
        ),
        link=_project_link,
        icon="/icons/project-activated.png",
    ),
    EventType.PROJECT_PAUSED: _Template(
        title=lambda m: f'{m.get("projectTitle") or "Project"} paused',
        message=lambda m: f'{m.get("projectTitle") or "Project"} has been paused. Automatic invoices are suspended.',
        link=_project_link,
        icon="/icons/project-paused.png",
    ),
    EventType.PROJECT_RESUMED: _Template(
        title=lambda m: f'{m.get("projectTitle") or "Project"} resumed',
        message=lambda m: f'{m.get("projectTitle") or "Project"} is active again',
        link=_project_link,
        icon="/icons/project-activated.png",
    ),
    EventType.PROJECT_COMPLETED: _Template(
        title=lambda m: f'Project "{m.get("projectTitle") or "Project"}" completed',
        message=lambda m: f'All milestones for "{m.get("projectTitle") or "Project"}" have been approved.',
        link=_project_link,
        icon="/icons/project-complete.png",
        priority="high",
    ),
    EventType.INVOICE_SENT: _Template(
        title=lambda m: f'Invoice {m["invoiceNumber"]} sent' if m.get("invoiceNumber") else "Invoice sent",
        message=lambda m: f'An invoice for {_amount(m)} was issued for {m.get("projectTitle") or "your project"}',
        link=_invoice_link,
        icon="/icons/invoice-sent.png",
    ),
    EventType.INVOICE_PAID: _Template(
        title=lambda m: "Invoice paid",
        message=lambda m: f'Invoice {m.get("invoiceNumber", "")} for {_amount(m)} has been paid',
        link=_invoice_link,
        icon="/icons/new-payment.png",
        priority="high",
    ),
    EventType.INVOICE_CANCELLED: _Template(
        title=lambda m: "Invoice cancelled",
        message=lambda m: f'Invoice {m.get("invoiceNumber", "")} for {_amount(m)} was cancelled',
        link=_invoice_link,
        icon="/icons/invoice-cancelled.png",
    ),
    EventType.MILESTONE_PAYMENT_RECEIVED: _Template(
        title=lambda m: "Milestone payment received",
        message=lambda m: (
            f'You received {_amount(m)} for completing a milestone in {m.get("projectTitle") or "your project"}'
        ),
        link=lambda m: "/wallet",
        icon="/icons/new-payment.png",
        priority="high",
    ),
    EventType.COMPLETION_PROJECT_ACTIVATED: _Template(
        title=lambda m: f'{m.get("projectTitle") or "Project"} is now active',
        message=lambda m: (
            f'{m.get("projectTitle") or "Project"} is active and includes {m.get("totalTasks", 0)} '
            f'milestone(s) due by {m.get("dueDate", "the deadline")}'
        ),
        link=_project_link,
        icon="/icons/project-activated.png",
    ),
    EventType.COMPLETION_UPFRONT_PAYMENT: _Template(
        title=lambda m: "Upfront payment issued",
        message=lambda m: (
            f'{_amount(m, "upfrontAmount")} was issued upfront for {m.get("projectTitle") or "your project"}. '
            f'{_amount(m, "remainingBudget")} of the budget remains.'
        ),
        link=_invoice_link,
        icon="/icons/new-payment.png",
        priority="high",
    ),
    EventType.COMPLETION_TASK_APPROVED: _Template(
        title=lambda m: "Task approved",
        message=lambda m: f'"{m.get("taskTitle", "Task")}" was approved',
        link=_project_link,
        icon="/icons/task-approved.png",
    ),
    EventType.COMPLETION_INVOICE_RECEIVED: _Template(
        title=lambda m: "New invoice received",
        message=lambda m: (
            f'You received a {_amount(m)} invoice ({m.get("invoiceNumber", "")}) '
            f'for {m.get("taskTitle") or m.get("projectTitle") or "this project"}'
        ),
        link=_invoice_link,
        icon="/icons/invoice-sent.png",
    ),
    EventType.COMPLETION_INVOICE_PAID: _Template(
        title=lambda m: "Invoice paid",
        message=lambda m: f'{_amount(m)} was paid for invoice {m.get("invoiceNumber", "")}',
        link=_invoice_link,
        icon="/icons/new-payment.png",
        priority="high",
    ),
    EventType.COMPLETION_PROJECT_COMPLETED: _Template(
        title=lambda m: f'Project "{m.get("projectTitle") or "Project"}" completed',
        message=lambda m: f'All tasks for {m.get("projectTitle") or "the project"} have been completed and approved.',
        link=_project_link,
        icon="/icons/project-complete.png",
        priority="high",
    ),
    EventType.COMPLETION_FINAL_PAYMENT: _Template(
        title=lambda m: "Final payment issued",
        message=lambda m: (
            f'The final payment of {_amount(m, "finalAmount")} for {m.get("projectTitle") or "the project"} was issued'
        ),
        link=_invoice_link,
        icon="/icons/new-payment.png",
        priority="high",
    ),
    EventType.COMPLETION_RATING_PROMPT: _Template(
        title=lambda m: "Rate your collaboration",
        message=lambda m: (
            f'How was working with the {m.get("counterpartyRole") or "other party"} on '
            f'{m.get("projectTitle") or "the project"}? Leave a rating.'
        ),
        link=_project_link,
        icon="/icons/rating.png",
    ),
}

_GENERIC = _Template(
    title=lambda m: "New activity",
    message=lambda m: "There is new activity on one of your projects",
    link=_project_link,
    icon="/icons/notification.png",
    priority="low",
)


class NotificationProjector:
    """Derives notification records from stored events."""

    def project(self, event: Event) -> NotificationRecord | None:
        """Map one event to a notification, or None if it is log-only.

        Args:
            event: A stored event

        Returns:
            NotificationRecord, or None when notification_type is UNCLASSIFIED
        """
        if not event.notification_type or event.notification_type == NotificationType.UNCLASSIFIED:
            return None

        context = event.context or {}
        # Template context: metadata first, routing hints fill the gaps
        meta = {**context, **(event.event_metadata or {})}
        template = TEMPLATES.get(event.type, _GENERIC)
        recipient_id = event.target_id or event.actor_id

        return NotificationRecord(
            id=f"notif_{event.id}",
            event_id=event.id,
            event_type=event.type,
            notification_type=event.notification_type,
            recipient_id=recipient_id,
            actor_id=event.actor_id,
            title=template.title(meta),
            message=template.message(meta),
            link=template.link(meta),
            icon=template.icon,
            priority=template.priority,
            project_id=context.get("projectId"),
            task_id=context.get("taskId"),
            invoice_id=context.get("invoiceId"),
            created_at=event.timestamp,
        )

    async def notifications_for_user(
        self, session: AsyncSession, user_id: str, limit: int | None = None
    ) -> list[NotificationRecord]:
        """Notifications addressed to a user, in event append order.

        Events without a target are addressed to their actor.
        """
        stmt = (
            select(Event)
            .where(
                Event.notification_type != 0,
                or_(
                    Event.target_id == user_id,
                    (Event.target_id.is_(None)) & (Event.actor_id == user_id),
                ),
            )
            .order_by(Event.timestamp.asc(), Event.id.asc())
        )
        result = await session.execute(stmt)

        records = []
        for event in result.scalars().all():
            record = self.project(event)
            if record is not None:
                records.append(record)

        if limit is not None:
            records = records[-limit:]
        logger.debug("notifications_projected", user_id=user_id, count=len(records))
        return records
