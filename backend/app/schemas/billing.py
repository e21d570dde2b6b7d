"""Billing Pydantic schemas for API requests and responses."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from app.domain.billing_states import InvoicingMethod


class CommandOutcome(StrEnum):
    APPLIED = "applied"
    NOOP = "noop"  # repeated command, state already reflects it
    PAYMENT_PENDING = "payment_pending_confirmation"


class TaskSpec(BaseModel):
    """A task to create at activation."""

    id: str | None = None  # defaults to "{project_id}-t{position}"
    title: str = Field(..., min_length=1, max_length=500)
    duration_weeks: Decimal | None = Field(default=None, description="Falls back to the project duration")


class ActivateProject(BaseModel):
    """Activation command. Tasks may be given in full or only as a count."""

    project_id: str = Field(..., min_length=1, max_length=64)
    title: str = ""
    commissioner_id: str = Field(..., min_length=1)
    freelancer_id: str = Field(..., min_length=1)
    invoicing_method: InvoicingMethod
    total_budget: Decimal = Field(..., gt=0)
    total_tasks: int | None = Field(default=None, gt=0)
    tasks: list[TaskSpec] = Field(default_factory=list)

    activated_at: AwareDatetime | None = None  # defaults to now
    duration_weeks: Decimal | None = None
    estimated_hours: Decimal | None = None
    intended_start: date | None = None
    intended_end: date | None = None
    gig_posted_date: date | None = None

    @model_validator(mode="after")
    def _check_task_count(self) -> "ActivateProject":
        if not self.tasks and self.total_tasks is None:
            raise ValueError("Either tasks or total_tasks is required")
        if self.tasks and self.total_tasks is not None and self.total_tasks != len(self.tasks):
            raise ValueError(f"total_tasks ({self.total_tasks}) does not match {len(self.tasks)} tasks given")
        return self

    @property
    def task_count(self) -> int:
        return len(self.tasks) if self.tasks else int(self.total_tasks)


class ActorRequest(BaseModel):
    """Body for commands that only need to know who acted."""

    actor_id: str = Field(..., min_length=1)


class RejectTaskRequest(ActorRequest):
    reason: str | None = Field(default=None, max_length=2000)


class ManualInvoiceRequest(ActorRequest):
    amount: Decimal
    task_id: str | None = None
    draft: bool = False
    request_key: str | None = Field(default=None, max_length=100, description="Client idempotency key")


class ConfirmPaymentRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1)


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    position: int
    title: str
    status: str
    completion: bool
    version: int
    due_date: datetime
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None


class InvoiceResponse(BaseModel):
    """Invoice as presented to readers. `status` may read as overdue."""

    id: str
    invoice_number: str
    project_id: str
    task_id: str | None = None
    invoice_type: str
    total_amount: Decimal
    status: str
    stored_status: str
    issued_at: datetime | None = None
    due_date: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    wallet_transaction_id: str | None = None
    payment_attempts: int = 0
    last_payment_error: str | None = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    commissioner_id: str
    freelancer_id: str
    invoicing_method: str
    total_budget: Decimal
    total_tasks: int
    status: str
    payment_phase: str | None = None
    upfront_paid: bool
    project_activated_at: datetime
    original_duration_weeks: Decimal
    original_estimated_hours: Decimal | None = None
    due_date: datetime
    completed_at: datetime | None = None


class BudgetSummary(BaseModel):
    total_budget: Decimal
    invoiced: Decimal
    paid: Decimal
    uninvoiced: Decimal
    remaining_for_manual: Decimal | None = None  # completion projects only
    suggested_manual_amount: Decimal | None = None


class ProjectDetailResponse(BaseModel):
    project: ProjectResponse
    tasks: list[TaskResponse]
    invoices: list[InvoiceResponse]
    budget: BudgetSummary


class CommandResponse(BaseModel):
    """Result of any billing command."""

    outcome: CommandOutcome
    project: ProjectResponse
    task: TaskResponse | None = None
    invoices: list[InvoiceResponse] = Field(default_factory=list)
    event_ids: list[int] = Field(default_factory=list)
    detail: str | None = None
