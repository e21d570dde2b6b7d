"""Task review API routes."""

from fastapi import APIRouter, Depends

from app.api.routes.billing import get_billing_service
from app.schemas.billing import ActorRequest, CommandResponse, RejectTaskRequest
from app.services.billing_service import BillingService

router = APIRouter()


@router.post("/{task_id}/submit", response_model=CommandResponse)
async def submit_task(task_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)):
    return await service.submit_task(task_id, request.actor_id)


@router.post("/{task_id}/review", response_model=CommandResponse)
async def start_review(task_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)):
    return await service.start_review(task_id, request.actor_id)


@router.post("/{task_id}/approve", response_model=CommandResponse)
async def approve_task(task_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)):
    """Approve a task. Milestone projects are invoiced immediately.

    Approving an approved task only retries invoicing that did not happen.
    """
    return await service.approve_task(task_id, request.actor_id)


@router.post("/{task_id}/reject", response_model=CommandResponse)
async def reject_task(
    task_id: str, request: RejectTaskRequest, service: BillingService = Depends(get_billing_service)
):
    return await service.reject_task(task_id, request.actor_id, request.reason)
