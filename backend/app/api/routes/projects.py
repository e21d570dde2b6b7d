"""Project billing API routes."""

from fastapi import APIRouter, Depends

from app.api.routes.billing import get_billing_service
from app.schemas.billing import (
    ActivateProject,
    ActorRequest,
    CommandResponse,
    InvoiceResponse,
    ManualInvoiceRequest,
    ProjectDetailResponse,
)
from app.services.billing_service import BillingService

router = APIRouter()


@router.post("/activate", response_model=CommandResponse)
async def activate_project(request: ActivateProject, service: BillingService = Depends(get_billing_service)):
    """Activate a project.

    Captures the intended duration, creates its tasks and, for completion
    projects, issues the upfront invoice. Repeating the call is a no-op.

    Raises:
        HTTPException(422): Invalid budget, task count or conflicting re-activation
    """
    return await service.activate_project(request)


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(project_id: str, service: BillingService = Depends(get_billing_service)):
    return await service.get_project(project_id)


@router.get("/{project_id}/invoices", response_model=list[InvoiceResponse])
async def list_project_invoices(project_id: str, service: BillingService = Depends(get_billing_service)):
    return await service.list_invoices(project_id)


@router.post("/{project_id}/pause", response_model=CommandResponse)
async def pause_project(
    project_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)
):
    return await service.pause_project(project_id, request.actor_id)


@router.post("/{project_id}/resume", response_model=CommandResponse)
async def resume_project(
    project_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)
):
    """Resume a paused project. Invoices suspended while paused are issued now."""
    return await service.resume_project(project_id, request.actor_id)


@router.post("/{project_id}/complete", response_model=CommandResponse)
async def complete_project(
    project_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)
):
    """Complete a completion-based project and issue its final settlement.

    Raises:
        HTTPException(422): Milestone project, or tasks still outstanding
        HTTPException(500): Invoices would not sum to the budget
    """
    return await service.complete_project(project_id, request.actor_id)


@router.post("/{project_id}/manual-invoices", response_model=CommandResponse, status_code=201)
async def submit_manual_invoice(
    project_id: str, request: ManualInvoiceRequest, service: BillingService = Depends(get_billing_service)
):
    """Freelancer invoices part of the remaining budget.

    Raises:
        HTTPException(422): Amount not positive or above the remaining budget
    """
    return await service.submit_manual_invoice(project_id, request)
