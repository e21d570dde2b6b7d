"""Notification and event Pydantic schemas for API responses."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class EventResponse(BaseModel):
    """Flat persisted shape of an event log entry."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    timestamp: datetime
    type: str
    notification_type: int
    actor_id: str
    target_id: str | None = None
    entity_type: int
    entity_id: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")
    context: dict[str, Any] = Field(default_factory=dict)


class NotificationRecord(BaseModel):
    """User-facing notification derived from one event."""

    id: str
    event_id: int
    event_type: str
    notification_type: int
    recipient_id: str
    actor_id: str
    title: str
    message: str
    link: str
    icon: str
    priority: Literal["low", "medium", "high"] = "medium"
    project_id: str | None = None
    task_id: str | None = None
    invoice_id: str | None = None
    created_at: datetime
    is_read: bool = False


class NotificationListResponse(BaseModel):
    user_id: str
    notifications: list[NotificationRecord]
