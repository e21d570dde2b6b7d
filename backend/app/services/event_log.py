"""EventLog: append-only store of typed domain events.

Appends run inside the caller's session and transaction, so an event is
committed together with the state change that caused it (or not at all).
Callers hold the project lock, which gives per-project total order.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import EventSchemaError
from app.db.models.event import Event
from app.domain.events import entity_type_for, missing_metadata, notification_type_for

logger = structlog.get_logger(__name__)


@dataclass
class NewEvent:
    """An event to append. notification_type and entity_type are derived."""

    type: str
    actor_id: str
    entity: str  # "task", "project", "invoice", ...
    entity_id: str
    target_id: str | None = None
    metadata: dict = field(default_factory=dict)
    context: dict = field(default_factory=dict)


@dataclass
class EventFilter:
    actor_id: str | None = None
    target_id: str | None = None
    project_id: str | None = None
    types: list[str] | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int | None = None


class EventLog:
    """Append and query billing events. No update or delete path exists."""

    def __init__(self, session: AsyncSession):
        """Initialize with dependency-injected session.

        Args:
            session: SQLAlchemy async session (not global state)
        """
        self.session = session

    async def _last_timestamp(self, project_id: str) -> datetime | None:
        result = await self.session.execute(
            select(func.max(Event.timestamp)).where(Event.project_id == project_id)
        )
        return result.scalar_one_or_none()

    async def append(self, new_event: NewEvent, now: datetime | None = None) -> int:
        """Append one event and return its id.

        Args:
            new_event: The event to record
            now: Current time (for deterministic testing)

        Returns:
            The new event's id (monotonically increasing)

        Raises:
            EventSchemaError: A known event type is missing required metadata
        """
        missing = missing_metadata(new_event.type, new_event.metadata)
        if missing:
            raise EventSchemaError(new_event.type, missing)

        now = now or datetime.now(UTC)
        context = {k: v for k, v in (new_event.context or {}).items() if v is not None}
        project_id = context.get("projectId")

        timestamp = now
        if project_id is not None:
            # Clock skew between workers must never reorder a project's history
            last = await self._last_timestamp(project_id)
            if last is not None and last > timestamp:
                timestamp = last

        event = Event(
            timestamp=timestamp,
            type=new_event.type,
            notification_type=int(notification_type_for(new_event.type)),
            actor_id=str(new_event.actor_id),
            target_id=str(new_event.target_id) if new_event.target_id is not None else None,
            entity_type=int(entity_type_for(new_event.entity)),
            entity_id=str(new_event.entity_id),
            event_metadata=dict(new_event.metadata or {}),
            context=context,
            project_id=project_id,
        )
        self.session.add(event)
        await self.session.flush()

        logger.debug(
            "event_appended",
            event_id=event.id,
            event_type=event.type,
            project_id=project_id,
            notification_type=event.notification_type,
        )
        return event.id

    async def query(self, event_filter: EventFilter | None = None) -> list[Event]:
        """Events matching the filter, ordered by (timestamp, id)."""
        f = event_filter or EventFilter()
        stmt = select(Event)

        if f.actor_id is not None:
            stmt = stmt.where(Event.actor_id == f.actor_id)
        if f.target_id is not None:
            stmt = stmt.where(Event.target_id == f.target_id)
        if f.project_id is not None:
            stmt = stmt.where(Event.project_id == f.project_id)
        if f.types:
            stmt = stmt.where(Event.type.in_(f.types))
        if f.since is not None:
            stmt = stmt.where(Event.timestamp >= f.since)
        if f.until is not None:
            stmt = stmt.where(Event.timestamp <= f.until)

        stmt = stmt.order_by(Event.timestamp.asc(), Event.id.asc())
        if f.limit is not None:
            stmt = stmt.limit(f.limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, project_id: str, event_type: str | None = None) -> int:
        stmt = select(func.count(Event.id)).where(Event.project_id == project_id)
        if event_type is not None:
            stmt = stmt.where(Event.type == event_type)
        result = await self.session.execute(stmt)
        return result.scalar_one()
