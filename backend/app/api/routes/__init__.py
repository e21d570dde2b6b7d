from fastapi import APIRouter

from app.api.routes import events, health, invoices, projects, tasks

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(events.router, tags=["events"])
