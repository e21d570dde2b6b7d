"""Event log and notification API routes (read-only)."""

from datetime import datetime

from fastapi import APIRouter, Query

from app.db.base import get_session_factory
from app.schemas.notifications import EventResponse, NotificationListResponse
from app.services.event_log import EventFilter, EventLog
from app.services.notification_projector import NotificationProjector

router = APIRouter()


@router.get("/events", response_model=list[EventResponse])
async def list_events(
    project_id: str | None = None,
    actor_id: str | None = None,
    target_id: str | None = None,
    type: list[str] | None = Query(default=None),
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int | None = Query(default=None, ge=1, le=1000),
):
    """Events in append order, optionally filtered."""
    async with get_session_factory()() as session:
        events = await EventLog(session).query(
            EventFilter(
                actor_id=actor_id,
                target_id=target_id,
                project_id=project_id,
                types=type,
                since=since,
                until=until,
                limit=limit,
            )
        )
        return [EventResponse.model_validate(e) for e in events]


@router.get("/notifications/{user_id}", response_model=NotificationListResponse)
async def list_notifications(user_id: str, limit: int | None = Query(default=None, ge=1, le=500)):
    """Notifications derived from the event log for one user."""
    async with get_session_factory()() as session:
        records = await NotificationProjector().notifications_for_user(session, user_id, limit=limit)
    return NotificationListResponse(user_id=user_id, notifications=records)
