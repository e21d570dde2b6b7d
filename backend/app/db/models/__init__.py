"""Re-export all models so Base.metadata sees them."""

from app.db.models.event import Event
from app.db.models.invoice import Invoice
from app.db.models.project import Project
from app.db.models.task import Task

__all__ = [
    "Event",
    "Invoice",
    "Project",
    "Task",
]
