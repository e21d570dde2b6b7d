"""Invoice lifecycle API routes."""

from fastapi import APIRouter, Depends

from app.api.routes.billing import get_billing_service
from app.schemas.billing import ActorRequest, CommandResponse, ConfirmPaymentRequest
from app.services.billing_service import BillingService

router = APIRouter()


@router.post("/{invoice_id}/send", response_model=CommandResponse)
async def send_invoice(invoice_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)):
    return await service.send_invoice(invoice_id, request.actor_id)


@router.post("/{invoice_id}/hold", response_model=CommandResponse)
async def hold_invoice(invoice_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)):
    return await service.hold_invoice(invoice_id, request.actor_id)


@router.post("/{invoice_id}/release", response_model=CommandResponse)
async def release_invoice(
    invoice_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)
):
    return await service.release_invoice(invoice_id, request.actor_id)


@router.post("/{invoice_id}/cancel", response_model=CommandResponse)
async def cancel_invoice(
    invoice_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)
):
    return await service.cancel_invoice(invoice_id, request.actor_id)


@router.post("/{invoice_id}/pay", response_model=CommandResponse)
async def pay_invoice(invoice_id: str, request: ActorRequest, service: BillingService = Depends(get_billing_service)):
    """Settle an invoice through the wallet ledger.

    Returns outcome payment_pending_confirmation when the ledger did not
    confirm; the invoice then stays sent.
    """
    return await service.pay_invoice(invoice_id, request.actor_id)


@router.post("/{invoice_id}/confirm", response_model=CommandResponse)
async def confirm_invoice_payment(
    invoice_id: str, request: ConfirmPaymentRequest, service: BillingService = Depends(get_billing_service)
):
    """Ledger callback confirming a credit that was pending."""
    return await service.confirm_invoice_payment(invoice_id, request.transaction_id)
