"""BillingService: the billing state machine for projects, tasks and invoices.

Every command runs under the project lock and inside one database transaction,
so a state change and the events describing it are committed together. The
only exception is task approval: the approval commits first and invoicing runs
in a second transaction, so an invoicing failure never un-approves a task.

Automatic invoices (milestone, upfront, final) are settled against the wallet
ledger after their transaction commits, when auto_settle_invoices is on.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from functools import partial

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    BillingError,
    BillingValidationError,
    InvariantViolationError,
    NotFoundError,
)
from app.core.locking import ProjectLockManager
from app.db.models.invoice import Invoice
from app.db.models.project import Project
from app.db.models.task import Task
from app.domain.billing_states import (
    NON_CANCELLABLE_TYPES,
    PAYABLE_STATUSES,
    InvoiceStatus,
    InvoiceType,
    InvoicingMethod,
    PaymentPhase,
    ProjectStatus,
    TaskStatus,
    can_advance_phase,
    can_transition_invoice,
    can_transition_task,
    effective_invoice_status,
)
from app.domain.duration import (
    HOURS_PER_WORK_DAY,
    WORK_DAYS_PER_WEEK,
    OriginalDuration,
    compute_due_date,
    normalize_duration_weeks,
    original_duration_from_dates,
)
from app.domain.events import EventType
from app.domain.invoicing import (
    compute_final_amount,
    compute_remaining_budget,
    compute_upfront_amount,
    milestone_amount_for_task,
    suggest_manual_invoice_amount,
    to_money,
    validate_manual_amount,
)
from app.schemas.billing import (
    ActivateProject,
    BudgetSummary,
    CommandOutcome,
    CommandResponse,
    InvoiceResponse,
    ManualInvoiceRequest,
    ProjectDetailResponse,
    ProjectResponse,
    TaskResponse,
)
from app.services.event_log import EventLog, NewEvent
from app.wallet.ledger import CreditInstruction, WalletCreditError, WalletLedger

logger = structlog.get_logger(__name__)

WEEKS_PRECISION = Decimal("0.0001")

# Event emitted when an invoice of each type is paid
PAID_EVENT_BY_INVOICE_TYPE = {
    InvoiceType.AUTO_MILESTONE: EventType.MILESTONE_PAYMENT_RECEIVED,
    InvoiceType.MANUAL_COMPLETION_TASK: EventType.COMPLETION_INVOICE_PAID,
    InvoiceType.COMPLETION_UPFRONT: EventType.COMPLETION_INVOICE_PAID,
    InvoiceType.COMPLETION_FINAL: EventType.COMPLETION_INVOICE_PAID,
}


@dataclass
class _Applied:
    """What a command did, collected while it runs under the lock."""

    outcome: CommandOutcome
    project_id: str
    task_id: str | None = None
    invoice_ids: list[str] = field(default_factory=list)
    event_ids: list[int] = field(default_factory=list)
    settle_ids: list[str] = field(default_factory=list)  # auto invoices to settle after commit
    detail: str | None = None


def _live(invoices: list[Invoice]) -> list[Invoice]:
    return [i for i in invoices if i.status != InvoiceStatus.CANCELLED]


def _total(invoices: list[Invoice]) -> Decimal:
    return sum((i.total_amount for i in invoices), Decimal("0.00"))


class BillingService:
    """Service layer for all billing commands and reads.

    Commands are safe to receive twice: a repeat either reports a no-op or
    retries only the part that did not happen the first time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: WalletLedger,
        locks: ProjectLockManager,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize with dependency injection.

        Args:
            session_factory: SQLAlchemy async session factory
            ledger: Wallet ledger that settles invoices
            locks: Per-project lock manager
            settings: Settings override (defaults to get_settings())
            clock: Time source returning aware datetimes (for deterministic testing)
        """
        self.session_factory = session_factory
        self.ledger = ledger
        self.locks = locks
        self.settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock()

    async def _execute(
        self,
        project_id: str,
        command: str,
        handler: Callable[[AsyncSession], Awaitable[_Applied]],
    ) -> _Applied:
        """Run a command handler under the project lock in its own transaction."""
        async with self.locks.hold(project_id):
            async with self.session_factory() as session:
                try:
                    applied = await handler(session)
                    await session.commit()
                except InvariantViolationError as exc:
                    await session.rollback()
                    logger.critical(
                        "billing_invariant_violated",
                        command=command,
                        project_id=exc.project_id,
                        detail=exc.detail,
                    )
                    raise

        logger.info(
            "billing_command_handled",
            command=command,
            project_id=project_id,
            outcome=applied.outcome.value,
            invoice_ids=applied.invoice_ids,
            event_count=len(applied.event_ids),
        )
        return applied

    async def _append(self, session: AsyncSession, applied: _Applied, event: NewEvent) -> int:
        event_id = await EventLog(session).append(event, now=self._now())
        applied.event_ids.append(event_id)
        return event_id

    @staticmethod
    def _context(project: Project, task: Task | None = None, invoice: Invoice | None = None) -> dict:
        return {
            "projectId": project.id,
            "taskId": task.id if task is not None else (invoice.task_id if invoice is not None else None),
            "invoiceId": invoice.id if invoice is not None else None,
        }

    @staticmethod
    def _counterparty(project: Project, actor_id: str) -> str:
        return project.commissioner_id if actor_id == project.freelancer_id else project.freelancer_id

    async def _project_id_of(self, model, entity_id: str, entity: str) -> str:
        async with self.session_factory() as session:
            result = await session.execute(select(model.project_id).where(model.id == entity_id))
            project_id = result.scalar_one_or_none()
        if project_id is None:
            raise NotFoundError(entity, entity_id)
        return project_id

    async def _get_project(self, session: AsyncSession, project_id: str) -> Project:
        project = await session.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def _get_task(self, session: AsyncSession, task_id: str) -> Task:
        task = await session.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def _get_invoice(self, session: AsyncSession, invoice_id: str) -> Invoice:
        invoice = await session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def _tasks(self, session: AsyncSession, project_id: str) -> list[Task]:
        result = await session.execute(select(Task).where(Task.project_id == project_id).order_by(Task.position))
        return list(result.scalars().all())

    async def _invoices(self, session: AsyncSession, project_id: str) -> list[Invoice]:
        result = await session.execute(
            select(Invoice)
            .where(Invoice.project_id == project_id)
            .order_by(Invoice.created_at.asc(), Invoice.invoice_number.asc())
        )
        return list(result.scalars().all())

    def _check_budget_ceiling(self, project: Project, invoices: list[Invoice], extra: Decimal) -> None:
        committed = _total(_live(invoices)) + extra
        if committed > project.total_budget:
            raise InvariantViolationError(
                project.id, f"invoiced total {committed} would exceed budget {project.total_budget}"
            )

    async def _issue_invoice(
        self,
        session: AsyncSession,
        project: Project,
        invoices: list[Invoice],
        invoice_type: InvoiceType,
        amount: Decimal,
        task: Task | None = None,
        draft: bool = False,
        request_key: str | None = None,
    ) -> Invoice:
        """Create an invoice row. Sent immediately unless draft."""
        amount = to_money(amount)
        if amount <= 0:
            raise BillingValidationError(f"Invoice amount must be positive, got {amount}")
        self._check_budget_ceiling(project, invoices, extra=amount)

        now = self._now()
        project.invoice_sequence = (project.invoice_sequence or 0) + 1
        invoice = Invoice(
            id=str(uuid.uuid4()),
            invoice_number=f"{self.settings.invoice_number_prefix}-{project.id}-{project.invoice_sequence:03d}",
            project_id=project.id,
            task_id=task.id if task is not None else None,
            invoice_type=invoice_type.value,
            total_amount=amount,
            status=(InvoiceStatus.DRAFT if draft else InvoiceStatus.SENT).value,
            request_key=request_key,
            issued_at=None if draft else now,
            due_date=None if draft else now + timedelta(days=self.settings.invoice_due_days),
            payment_attempts=0,
            created_at=now,
        )
        session.add(invoice)
        await session.flush()
        invoices.append(invoice)

        logger.info(
            "invoice_issued",
            project_id=project.id,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            invoice_type=invoice.invoice_type,
            amount=str(amount),
            status=invoice.status,
        )
        return invoice

    async def _auto_settle(self, applied: _Applied) -> None:
        """Pay auto-issued invoices once their creating transaction has committed."""
        if not self.settings.auto_settle_invoices:
            return
        for invoice_id in applied.settle_ids:
            try:
                settled = await self._execute(
                    applied.project_id,
                    "pay_invoice",
                    partial(self._do_pay, invoice_id=invoice_id, actor_id=None),
                )
            except BillingError as exc:
                # The creating command already committed; the invoice stays sent for pay_invoice
                logger.error(
                    "auto_settle_failed",
                    project_id=applied.project_id,
                    invoice_id=invoice_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue
            applied.event_ids.extend(settled.event_ids)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def _original_duration(self, command: ActivateProject) -> OriginalDuration:
        derived = None
        if command.intended_start is not None and command.intended_end is not None:
            try:
                derived = original_duration_from_dates(command.intended_start, command.intended_end)
            except ValueError:
                logger.warning(
                    "intended_dates_invalid",
                    project_id=command.project_id,
                    intended_start=command.intended_start.isoformat(),
                    intended_end=command.intended_end.isoformat(),
                )

        weeks = command.duration_weeks
        if weeks is None and derived is not None:
            weeks = derived.weeks
        weeks = normalize_duration_weeks(weeks).quantize(WEEKS_PRECISION)

        hours = command.estimated_hours
        if hours is None:
            hours = derived.estimated_hours if derived is not None else weeks * WORK_DAYS_PER_WEEK * HOURS_PER_WORK_DAY

        return OriginalDuration(
            weeks=weeks,
            estimated_hours=Decimal(hours),
            intended_start=command.intended_start,
            intended_end=command.intended_end,
        )

    async def activate_project(self, command: ActivateProject) -> CommandResponse:
        """Activate a project and capture its intended duration.

        Completion projects also get their upfront invoice here. Activating an
        already activated project is a no-op.

        Args:
            command: Activation details

        Returns:
            CommandResponse with the project and any upfront invoice

        Raises:
            BillingValidationError: Bad input or conflicting re-activation
        """
        applied = await self._execute(command.project_id, "activate_project", partial(self._do_activate, command=command))
        await self._auto_settle(applied)
        return await self._respond(applied)

    async def _do_activate(self, session: AsyncSession, command: ActivateProject) -> _Applied:
        existing = await session.get(Project, command.project_id)
        if existing is not None:
            if existing.invoicing_method != command.invoicing_method:
                raise BillingValidationError(
                    f"Project already activated with {existing.invoicing_method} invoicing"
                )
            logger.info("project_already_activated", project_id=existing.id)
            upfront = [i.id for i in await self._invoices(session, existing.id) if i.invoice_type == InvoiceType.COMPLETION_UPFRONT]
            return _Applied(CommandOutcome.NOOP, existing.id, invoice_ids=upfront, detail="Project is already activated")

        now = self._now()
        activated_at = command.activated_at or now
        duration = self._original_duration(command)
        method = InvoicingMethod(command.invoicing_method)
        total_budget = to_money(command.total_budget)
        total_tasks = command.task_count

        project = Project(
            id=command.project_id,
            title=command.title,
            commissioner_id=command.commissioner_id,
            freelancer_id=command.freelancer_id,
            invoicing_method=method.value,
            total_budget=total_budget,
            total_tasks=total_tasks,
            gig_posted_date=command.gig_posted_date,
            project_activated_at=activated_at,
            original_duration_weeks=duration.weeks,
            original_estimated_hours=duration.estimated_hours,
            intended_start=duration.intended_start,
            intended_end=duration.intended_end,
            due_date=compute_due_date(activated_at, duration.weeks),
            status=ProjectStatus.ONGOING.value,
            payment_phase=PaymentPhase.NOT_ACTIVATED.value if method == InvoicingMethod.COMPLETION else None,
            upfront_paid=False,
            invoice_sequence=0,
        )
        session.add(project)

        tasks = []
        for position in range(1, total_tasks + 1):
            planned = command.tasks[position - 1] if command.tasks else None
            weeks = duration.weeks
            if planned is not None and planned.duration_weeks is not None:
                weeks = normalize_duration_weeks(planned.duration_weeks).quantize(WEEKS_PRECISION)
            task = Task(
                id=(planned.id if planned is not None and planned.id else f"{project.id}-t{position}"),
                project_id=project.id,
                position=position,
                title=planned.title if planned is not None else f"Milestone {position}",
                status=TaskStatus.PENDING.value,
                completion=False,
                version=0,
                task_activated_at=activated_at,
                original_task_duration_weeks=weeks,
                due_date=compute_due_date(activated_at, weeks),
            )
            session.add(task)
            tasks.append(task)
        await session.flush()

        applied = _Applied(CommandOutcome.APPLIED, project.id)
        for task in tasks:
            await self._append(
                session,
                applied,
                NewEvent(
                    type=EventType.TASK_CREATED,
                    actor_id=project.commissioner_id,
                    entity="task",
                    entity_id=task.id,
                    metadata={"taskTitle": task.title, "position": task.position},
                    context=self._context(project, task),
                ),
            )

        activated_type = (
            EventType.COMPLETION_PROJECT_ACTIVATED if method == InvoicingMethod.COMPLETION else EventType.PROJECT_ACTIVATED
        )
        await self._append(
            session,
            applied,
            NewEvent(
                type=activated_type,
                actor_id=project.commissioner_id,
                target_id=project.freelancer_id,
                entity="project",
                entity_id=project.id,
                metadata={
                    "projectTitle": project.title,
                    "dueDate": project.due_date.isoformat(),
                    "totalTasks": total_tasks,
                    "invoicingMethod": method.value,
                    "totalBudget": str(total_budget),
                    "durationWeeks": str(duration.weeks),
                },
                context=self._context(project),
            ),
        )

        if method == InvoicingMethod.COMPLETION:
            await self._issue_upfront(session, project, applied)

        logger.info(
            "project_activated",
            project_id=project.id,
            invoicing_method=method.value,
            total_tasks=total_tasks,
            due_date=project.due_date.isoformat(),
        )
        return applied

    async def _issue_upfront(self, session: AsyncSession, project: Project, applied: _Applied) -> None:
        if project.upfront_paid or not can_advance_phase(project.payment_phase, PaymentPhase.UPFRONT_PAID):
            return

        invoices = await self._invoices(session, project.id)
        amount = compute_upfront_amount(project.total_budget)
        invoice = await self._issue_invoice(session, project, invoices, InvoiceType.COMPLETION_UPFRONT, amount)
        project.payment_phase = PaymentPhase.UPFRONT_PAID.value
        project.upfront_paid = True
        applied.invoice_ids.append(invoice.id)
        applied.settle_ids.append(invoice.id)

        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.COMPLETION_UPFRONT_PAYMENT,
                actor_id=project.commissioner_id,
                target_id=project.freelancer_id,
                entity="invoice",
                entity_id=invoice.id,
                metadata={
                    "projectTitle": project.title,
                    "upfrontAmount": str(amount),
                    "remainingBudget": str(compute_remaining_budget(project.total_budget, [])),
                    "invoiceNumber": invoice.invoice_number,
                },
                context=self._context(project, invoice=invoice),
            ),
        )

    async def pause_project(self, project_id: str, actor_id: str) -> CommandResponse:
        """Pause a project. Automatic invoicing is suspended until resumed."""
        applied = await self._execute(project_id, "pause_project", partial(self._do_pause, project_id=project_id, actor_id=actor_id))
        return await self._respond(applied)

    async def _do_pause(self, session: AsyncSession, project_id: str, actor_id: str) -> _Applied:
        project = await self._get_project(session, project_id)
        if project.status == ProjectStatus.PAUSED:
            return _Applied(CommandOutcome.NOOP, project.id, detail="Project is already paused")
        if project.status == ProjectStatus.COMPLETED:
            raise BillingValidationError("A completed project cannot be paused")

        project.status = ProjectStatus.PAUSED.value
        applied = _Applied(CommandOutcome.APPLIED, project.id)
        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.PROJECT_PAUSED,
                actor_id=actor_id,
                target_id=self._counterparty(project, actor_id),
                entity="project",
                entity_id=project.id,
                metadata={"projectTitle": project.title},
                context=self._context(project),
            ),
        )
        return applied

    async def resume_project(self, project_id: str, actor_id: str) -> CommandResponse:
        """Resume a paused project and issue any automatic invoices owed meanwhile."""
        applied = await self._execute(project_id, "resume_project", partial(self._do_resume, project_id=project_id, actor_id=actor_id))
        await self._auto_settle(applied)
        return await self._respond(applied)

    async def _do_resume(self, session: AsyncSession, project_id: str, actor_id: str) -> _Applied:
        project = await self._get_project(session, project_id)
        if project.status != ProjectStatus.PAUSED:
            return _Applied(CommandOutcome.NOOP, project.id, detail=f"Project is {project.status}, not paused")

        project.status = ProjectStatus.ONGOING.value
        applied = _Applied(CommandOutcome.APPLIED, project.id)
        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.PROJECT_RESUMED,
                actor_id=actor_id,
                target_id=self._counterparty(project, actor_id),
                entity="project",
                entity_id=project.id,
                metadata={"projectTitle": project.title},
                context=self._context(project),
            ),
        )
        await self._catch_up(session, project, actor_id, applied)
        return applied

    async def complete_project(self, project_id: str, actor_id: str) -> CommandResponse:
        """Settle a completion-based project: issue the final invoice and close it.

        Raises:
            BillingValidationError: Wrong invoicing method or tasks outstanding
            InvariantViolationError: Invoices would not sum to the budget
        """
        applied = await self._execute(project_id, "complete_project", partial(self._do_complete, project_id=project_id, actor_id=actor_id))
        await self._auto_settle(applied)
        return await self._respond(applied)

    async def _do_complete(self, session: AsyncSession, project_id: str, actor_id: str) -> _Applied:
        project = await self._get_project(session, project_id)
        if project.invoicing_method != InvoicingMethod.COMPLETION:
            raise BillingValidationError("Milestone projects complete automatically when the last task is approved")
        if project.payment_phase == PaymentPhase.FINALIZED:
            return _Applied(CommandOutcome.NOOP, project.id, detail="Project is already completed")

        # Explicit completion settles even a paused project; only automatic settlement waits
        applied = _Applied(CommandOutcome.APPLIED, project.id)
        await self._finalize_completion(session, project, actor_id, applied)
        return applied

    async def _catch_up(self, session: AsyncSession, project: Project, actor_id: str, applied: _Applied) -> None:
        """Issue automatic invoices owed for approved tasks, then complete the project if due."""
        if project.status == ProjectStatus.PAUSED:
            logger.info("auto_invoicing_suspended", project_id=project.id)
            return

        tasks = await self._tasks(session, project.id)
        all_approved = bool(tasks) and all(t.status == TaskStatus.APPROVED for t in tasks)

        if project.invoicing_method == InvoicingMethod.MILESTONE:
            for task in tasks:
                if task.status == TaskStatus.APPROVED:
                    await self._issue_milestone_invoice(session, project, task, applied)
            if all_approved and project.status != ProjectStatus.COMPLETED:
                await self._complete_milestone_project(session, project, actor_id, applied)
        elif all_approved and project.payment_phase == PaymentPhase.UPFRONT_PAID:
            await self._finalize_completion(session, project, actor_id, applied)

    async def _issue_milestone_invoice(
        self, session: AsyncSession, project: Project, task: Task, applied: _Applied
    ) -> None:
        invoices = await self._invoices(session, project.id)
        milestones = [i for i in invoices if i.invoice_type == InvoiceType.AUTO_MILESTONE]
        if any(i.task_id == task.id for i in milestones):
            return

        amount = milestone_amount_for_task(project.total_budget, project.total_tasks, len(milestones), _total(milestones))
        invoice = await self._issue_invoice(session, project, invoices, InvoiceType.AUTO_MILESTONE, amount, task=task)
        applied.invoice_ids.append(invoice.id)
        applied.settle_ids.append(invoice.id)

        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.INVOICE_SENT,
                actor_id=project.freelancer_id,
                target_id=project.commissioner_id,
                entity="invoice",
                entity_id=invoice.id,
                metadata={
                    "projectTitle": project.title,
                    "taskTitle": task.title,
                    "invoiceNumber": invoice.invoice_number,
                    "amount": str(invoice.total_amount),
                    "invoiceType": invoice.invoice_type,
                    "dueDate": invoice.due_date.isoformat(),
                },
                context=self._context(project, task, invoice),
            ),
        )

    async def _complete_milestone_project(
        self, session: AsyncSession, project: Project, actor_id: str, applied: _Applied
    ) -> None:
        invoiced = _total(_live(await self._invoices(session, project.id)))
        if invoiced != project.total_budget:
            raise InvariantViolationError(
                project.id, f"milestone invoices sum to {invoiced}, budget is {project.total_budget}"
            )

        project.status = ProjectStatus.COMPLETED.value
        project.completed_at = self._now()
        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.PROJECT_COMPLETED,
                actor_id=actor_id,
                target_id=project.freelancer_id,
                entity="project",
                entity_id=project.id,
                metadata={"projectTitle": project.title, "totalTasks": project.total_tasks},
                context=self._context(project),
            ),
        )
        logger.info("project_completed", project_id=project.id, invoicing_method=project.invoicing_method)

    async def _finalize_completion(
        self, session: AsyncSession, project: Project, actor_id: str, applied: _Applied
    ) -> None:
        """Issue the final settlement for a completion project and close it."""
        if project.payment_phase == PaymentPhase.FINALIZED:
            return
        if not can_advance_phase(project.payment_phase, PaymentPhase.FINALIZED):
            raise BillingValidationError("Upfront payment has not been issued for this project")

        tasks = await self._tasks(session, project.id)
        approved = sum(1 for t in tasks if t.status == TaskStatus.APPROVED)
        if approved < project.total_tasks:
            raise BillingValidationError(f"Only {approved} of {project.total_tasks} tasks are approved")

        invoices = await self._invoices(session, project.id)
        live = _live(invoices)
        manual = [i.total_amount for i in live if i.invoice_type == InvoiceType.MANUAL_COMPLETION_TASK]
        upfront = _total([i for i in live if i.invoice_type == InvoiceType.COMPLETION_UPFRONT])
        final_amount = compute_final_amount(project.id, project.total_budget, manual)

        settled = upfront + sum(manual, Decimal("0.00")) + final_amount
        if settled != project.total_budget:
            raise InvariantViolationError(
                project.id, f"completion invoices sum to {settled}, budget is {project.total_budget}"
            )

        final_invoice = None
        if final_amount > 0:
            final_invoice = await self._issue_invoice(session, project, invoices, InvoiceType.COMPLETION_FINAL, final_amount)
            applied.invoice_ids.append(final_invoice.id)
            applied.settle_ids.append(final_invoice.id)

        project.payment_phase = PaymentPhase.FINALIZED.value
        project.status = ProjectStatus.COMPLETED.value
        project.completed_at = self._now()

        if final_invoice is not None:
            await self._append(
                session,
                applied,
                NewEvent(
                    type=EventType.COMPLETION_FINAL_PAYMENT,
                    actor_id=project.commissioner_id,
                    target_id=project.freelancer_id,
                    entity="invoice",
                    entity_id=final_invoice.id,
                    metadata={
                        "projectTitle": project.title,
                        "invoiceNumber": final_invoice.invoice_number,
                        "finalAmount": str(final_amount),
                    },
                    context=self._context(project, invoice=final_invoice),
                ),
            )
        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.COMPLETION_PROJECT_COMPLETED,
                actor_id=actor_id,
                target_id=project.freelancer_id,
                entity="project",
                entity_id=project.id,
                metadata={
                    "projectTitle": project.title,
                    "totalTasks": project.total_tasks,
                    "finalAmount": str(final_amount),
                },
                context=self._context(project),
            ),
        )
        # Each party is asked to rate the other
        parties = (
            (project.freelancer_id, project.commissioner_id, "commissioner"),
            (project.commissioner_id, project.freelancer_id, "freelancer"),
        )
        for recipient_id, counterparty_id, counterparty_role in parties:
            await self._append(
                session,
                applied,
                NewEvent(
                    type=EventType.COMPLETION_RATING_PROMPT,
                    actor_id=project.commissioner_id,
                    target_id=recipient_id,
                    entity="project",
                    entity_id=project.id,
                    metadata={
                        "projectTitle": project.title,
                        "counterpartyId": counterparty_id,
                        "counterpartyRole": counterparty_role,
                    },
                    context=self._context(project),
                ),
            )
        logger.info(
            "project_completed",
            project_id=project.id,
            invoicing_method=project.invoicing_method,
            final_amount=str(final_amount),
        )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def _task_command(self, task_id: str, command: str, handler) -> CommandResponse:
        project_id = await self._project_id_of(Task, task_id, "Task")
        applied = await self._execute(project_id, command, partial(handler, task_id=task_id))
        await self._auto_settle(applied)
        return await self._respond(applied)

    @staticmethod
    def _require_task_transition(task: Task, target: TaskStatus) -> None:
        if not can_transition_task(TaskStatus(task.status), target):
            raise BillingValidationError(f"Task cannot move from {task.status} to {target.value}")

    async def submit_task(self, task_id: str, actor_id: str) -> CommandResponse:
        """Freelancer submits work for review."""
        return await self._task_command(task_id, "submit_task", partial(self._do_submit, actor_id=actor_id))

    async def _do_submit(self, session: AsyncSession, task_id: str, actor_id: str) -> _Applied:
        task = await self._get_task(session, task_id)
        project = await self._get_project(session, task.project_id)
        if task.status in (TaskStatus.SUBMITTED, TaskStatus.IN_REVIEW):
            return _Applied(CommandOutcome.NOOP, project.id, task_id=task.id, detail="Task is already submitted")
        if project.status == ProjectStatus.COMPLETED:
            raise BillingValidationError("Project is already completed")
        self._require_task_transition(task, TaskStatus.SUBMITTED)

        task.status = TaskStatus.SUBMITTED.value
        task.version = (task.version or 0) + 1
        task.submitted_at = self._now()
        task.rejection_reason = None

        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=task.id)
        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.TASK_SUBMITTED,
                actor_id=actor_id,
                target_id=project.commissioner_id,
                entity="task",
                entity_id=task.id,
                metadata={"projectTitle": project.title, "taskTitle": task.title, "version": task.version},
                context=self._context(project, task),
            ),
        )
        return applied

    async def start_review(self, task_id: str, actor_id: str) -> CommandResponse:
        return await self._task_command(task_id, "start_review", partial(self._do_review, actor_id=actor_id))

    async def _do_review(self, session: AsyncSession, task_id: str, actor_id: str) -> _Applied:
        task = await self._get_task(session, task_id)
        if task.status == TaskStatus.IN_REVIEW:
            return _Applied(CommandOutcome.NOOP, task.project_id, task_id=task.id, detail="Task is already in review")
        self._require_task_transition(task, TaskStatus.IN_REVIEW)

        task.status = TaskStatus.IN_REVIEW.value
        logger.info("task_review_started", task_id=task.id, project_id=task.project_id, actor_id=actor_id)
        return _Applied(CommandOutcome.APPLIED, task.project_id, task_id=task.id)

    async def reject_task(self, task_id: str, actor_id: str, reason: str | None = None) -> CommandResponse:
        """Commissioner sends a submission back. A reason produces the commented event variant."""
        return await self._task_command(
            task_id, "reject_task", partial(self._do_reject, actor_id=actor_id, reason=reason)
        )

    async def _do_reject(self, session: AsyncSession, task_id: str, actor_id: str, reason: str | None) -> _Applied:
        task = await self._get_task(session, task_id)
        project = await self._get_project(session, task.project_id)
        if task.status == TaskStatus.REJECTED:
            return _Applied(CommandOutcome.NOOP, project.id, task_id=task.id, detail="Task is already rejected")
        self._require_task_transition(task, TaskStatus.REJECTED)

        reason = (reason or "").strip() or None
        task.status = TaskStatus.REJECTED.value
        task.rejection_reason = reason

        metadata = {"projectTitle": project.title, "taskTitle": task.title, "version": task.version}
        event_type = EventType.TASK_REJECTED
        if reason:
            event_type = EventType.TASK_REJECTED_WITH_COMMENT
            metadata["rejectionComment"] = reason

        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=task.id)
        await self._append(
            session,
            applied,
            NewEvent(
                type=event_type,
                actor_id=actor_id,
                target_id=project.freelancer_id,
                entity="task",
                entity_id=task.id,
                metadata=metadata,
                context=self._context(project, task),
            ),
        )
        return applied

    async def approve_task(self, task_id: str, actor_id: str) -> CommandResponse:
        """Commissioner approves a submission, triggering automatic invoicing.

        Approving an approved task appends nothing. It only retries invoicing
        that did not happen the first time.

        Raises:
            BillingValidationError: Task is not in a reviewable state
            InvariantViolationError: Invoicing would exceed the budget
        """
        return await self._task_command(task_id, "approve_task", partial(self._do_approve, actor_id=actor_id))

    async def _do_approve(self, session: AsyncSession, task_id: str, actor_id: str) -> _Applied:
        task = await self._get_task(session, task_id)
        project = await self._get_project(session, task.project_id)
        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=task.id)

        if task.status == TaskStatus.APPROVED:
            await self._catch_up(session, project, actor_id, applied)
            if not applied.event_ids:
                applied.outcome = CommandOutcome.NOOP
                applied.detail = "Task is already approved"
            return applied

        if project.status == ProjectStatus.COMPLETED:
            raise BillingValidationError("Project is already completed")
        self._require_task_transition(task, TaskStatus.APPROVED)

        task.status = TaskStatus.APPROVED.value
        task.completion = True
        task.approved_at = self._now()

        tasks = await self._tasks(session, project.id)
        remaining = sum(1 for t in tasks if t.status != TaskStatus.APPROVED)
        approved_type = (
            EventType.COMPLETION_TASK_APPROVED
            if project.invoicing_method == InvoicingMethod.COMPLETION
            else EventType.TASK_APPROVED
        )
        await self._append(
            session,
            applied,
            NewEvent(
                type=approved_type,
                actor_id=actor_id,
                target_id=project.freelancer_id,
                entity="task",
                entity_id=task.id,
                metadata={"projectTitle": project.title, "taskTitle": task.title, "remainingTasks": remaining},
                context=self._context(project, task),
            ),
        )
        # Approval stands even if invoicing below fails
        await session.commit()

        await self._catch_up(session, project, actor_id, applied)
        return applied

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    async def submit_manual_invoice(self, project_id: str, request: ManualInvoiceRequest) -> CommandResponse:
        """Freelancer invoices part of the remaining budget of a completion project.

        Raises:
            BillingValidationError: Amount not positive or above remaining budget,
                or the project does not accept manual invoices
        """
        applied = await self._execute(
            project_id, "submit_manual_invoice", partial(self._do_manual_invoice, project_id=project_id, request=request)
        )
        return await self._respond(applied)

    async def _do_manual_invoice(self, session: AsyncSession, project_id: str, request: ManualInvoiceRequest) -> _Applied:
        project = await self._get_project(session, project_id)

        if request.request_key:
            result = await session.execute(select(Invoice).where(Invoice.request_key == request.request_key))
            existing = result.scalar_one_or_none()
            if existing is not None:
                if existing.project_id != project.id:
                    raise BillingValidationError("request_key was already used for another project")
                return _Applied(
                    CommandOutcome.NOOP, project.id, invoice_ids=[existing.id], detail="Invoice already submitted"
                )

        if project.invoicing_method != InvoicingMethod.COMPLETION:
            raise BillingValidationError("Manual invoices are only available for completion-based projects")
        if project.payment_phase == PaymentPhase.FINALIZED:
            raise BillingValidationError("Project is already completed")
        if project.payment_phase != PaymentPhase.UPFRONT_PAID:
            raise BillingValidationError("Upfront payment has not been issued for this project")

        task = None
        if request.task_id:
            task = await self._get_task(session, request.task_id)
            if task.project_id != project.id:
                raise BillingValidationError(f"Task {task.id} does not belong to project {project.id}")

        invoices = await self._invoices(session, project.id)
        manual = [i.total_amount for i in _live(invoices) if i.invoice_type == InvoiceType.MANUAL_COMPLETION_TASK]
        remaining = compute_remaining_budget(project.total_budget, manual)
        amount = validate_manual_amount(request.amount, remaining)

        invoice = await self._issue_invoice(
            session,
            project,
            invoices,
            InvoiceType.MANUAL_COMPLETION_TASK,
            amount,
            task=task,
            draft=request.draft,
            request_key=request.request_key,
        )
        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=invoice.task_id, invoice_ids=[invoice.id])
        if not request.draft:
            await self._append_invoice_sent(session, project, invoice, request.actor_id, applied, remaining - amount)
        return applied

    async def _append_invoice_sent(
        self,
        session: AsyncSession,
        project: Project,
        invoice: Invoice,
        actor_id: str,
        applied: _Applied,
        remaining_budget: Decimal | None = None,
    ) -> None:
        task = await session.get(Task, invoice.task_id) if invoice.task_id else None
        metadata = {
            "projectTitle": project.title,
            "invoiceNumber": invoice.invoice_number,
            "amount": str(invoice.total_amount),
            "invoiceType": invoice.invoice_type,
            "dueDate": invoice.due_date.isoformat() if invoice.due_date else None,
        }
        if task is not None:
            metadata["taskTitle"] = task.title

        event_type = EventType.INVOICE_SENT
        if invoice.invoice_type == InvoiceType.MANUAL_COMPLETION_TASK:
            event_type = EventType.COMPLETION_INVOICE_RECEIVED
            if remaining_budget is None:
                manual = [
                    i.total_amount
                    for i in _live(await self._invoices(session, project.id))
                    if i.invoice_type == InvoiceType.MANUAL_COMPLETION_TASK
                ]
                remaining_budget = compute_remaining_budget(project.total_budget, manual)
            metadata["remainingBudget"] = str(remaining_budget)

        await self._append(
            session,
            applied,
            NewEvent(
                type=event_type,
                actor_id=actor_id,
                target_id=project.commissioner_id,
                entity="invoice",
                entity_id=invoice.id,
                metadata={k: v for k, v in metadata.items() if v is not None},
                context=self._context(project, task, invoice),
            ),
        )

    async def _invoice_command(self, invoice_id: str, command: str, handler) -> CommandResponse:
        project_id = await self._project_id_of(Invoice, invoice_id, "Invoice")
        applied = await self._execute(project_id, command, partial(handler, invoice_id=invoice_id))
        return await self._respond(applied)

    async def _load_invoice(self, session: AsyncSession, invoice_id: str) -> tuple[Invoice, Project]:
        invoice = await self._get_invoice(session, invoice_id)
        project = await self._get_project(session, invoice.project_id)
        return invoice, project

    @staticmethod
    def _require_invoice_transition(invoice: Invoice, target: InvoiceStatus) -> None:
        if not can_transition_invoice(InvoiceStatus(invoice.status), target):
            raise BillingValidationError(
                f"Invoice {invoice.invoice_number} cannot move from {invoice.status} to {target.value}"
            )

    async def send_invoice(self, invoice_id: str, actor_id: str) -> CommandResponse:
        """Send a draft invoice to the commissioner."""
        return await self._invoice_command(invoice_id, "send_invoice", partial(self._do_send, actor_id=actor_id))

    async def _do_send(self, session: AsyncSession, invoice_id: str, actor_id: str) -> _Applied:
        invoice, project = await self._load_invoice(session, invoice_id)
        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=invoice.task_id, invoice_ids=[invoice.id])
        if invoice.status == InvoiceStatus.SENT:
            applied.outcome = CommandOutcome.NOOP
            applied.detail = "Invoice is already sent"
            return applied
        self._require_invoice_transition(invoice, InvoiceStatus.SENT)
        if invoice.status != InvoiceStatus.DRAFT:
            raise BillingValidationError("Use release to return an on-hold invoice to sent")

        now = self._now()
        invoice.status = InvoiceStatus.SENT.value
        invoice.issued_at = now
        invoice.due_date = now + timedelta(days=self.settings.invoice_due_days)
        await self._append_invoice_sent(session, project, invoice, actor_id, applied)
        return applied

    async def hold_invoice(self, invoice_id: str, actor_id: str) -> CommandResponse:
        return await self._invoice_command(
            invoice_id,
            "hold_invoice",
            partial(self._do_hold_or_release, actor_id=actor_id, target=InvoiceStatus.ON_HOLD),
        )

    async def release_invoice(self, invoice_id: str, actor_id: str) -> CommandResponse:
        return await self._invoice_command(
            invoice_id,
            "release_invoice",
            partial(self._do_hold_or_release, actor_id=actor_id, target=InvoiceStatus.SENT),
        )

    async def _do_hold_or_release(
        self, session: AsyncSession, invoice_id: str, actor_id: str, target: InvoiceStatus
    ) -> _Applied:
        invoice, project = await self._load_invoice(session, invoice_id)
        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=invoice.task_id, invoice_ids=[invoice.id])
        if invoice.status == target:
            applied.outcome = CommandOutcome.NOOP
            applied.detail = f"Invoice is already {target.value}"
            return applied
        if target == InvoiceStatus.SENT and invoice.status != InvoiceStatus.ON_HOLD:
            raise BillingValidationError(f"Only on-hold invoices can be released, invoice is {invoice.status}")
        self._require_invoice_transition(invoice, target)

        invoice.status = target.value
        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.INVOICE_ON_HOLD if target == InvoiceStatus.ON_HOLD else EventType.INVOICE_RELEASED,
                actor_id=actor_id,
                target_id=self._counterparty(project, actor_id),
                entity="invoice",
                entity_id=invoice.id,
                metadata={"invoiceNumber": invoice.invoice_number, "amount": str(invoice.total_amount)},
                context=self._context(project, invoice=invoice),
            ),
        )
        return applied

    async def cancel_invoice(self, invoice_id: str, actor_id: str) -> CommandResponse:
        """Withdraw an unpaid invoice. Upfront and final invoices cannot be cancelled."""
        return await self._invoice_command(invoice_id, "cancel_invoice", partial(self._do_cancel, actor_id=actor_id))

    async def _do_cancel(self, session: AsyncSession, invoice_id: str, actor_id: str) -> _Applied:
        invoice, project = await self._load_invoice(session, invoice_id)
        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=invoice.task_id, invoice_ids=[invoice.id])
        if invoice.invoice_type in NON_CANCELLABLE_TYPES:
            raise BillingValidationError(f"{invoice.invoice_type} invoices cannot be cancelled")
        if invoice.status == InvoiceStatus.CANCELLED:
            applied.outcome = CommandOutcome.NOOP
            applied.detail = "Invoice is already cancelled"
            return applied
        if project.status == ProjectStatus.COMPLETED:
            raise BillingValidationError("Invoices of a completed project cannot be cancelled")
        self._require_invoice_transition(invoice, InvoiceStatus.CANCELLED)

        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.cancelled_at = self._now()
        await self._append(
            session,
            applied,
            NewEvent(
                type=EventType.INVOICE_CANCELLED,
                actor_id=actor_id,
                target_id=self._counterparty(project, actor_id),
                entity="invoice",
                entity_id=invoice.id,
                metadata={"invoiceNumber": invoice.invoice_number, "amount": str(invoice.total_amount)},
                context=self._context(project, invoice=invoice),
            ),
        )
        return applied

    async def pay_invoice(self, invoice_id: str, actor_id: str | None = None) -> CommandResponse:
        """Settle a sent invoice through the wallet ledger.

        A ledger failure leaves the invoice sent and reports
        payment_pending_confirmation; confirm_invoice_payment completes it
        once the ledger confirms.

        Args:
            invoice_id: Invoice to pay
            actor_id: Who triggered payment (defaults to the commissioner)

        Returns:
            CommandResponse with outcome applied, noop or payment_pending_confirmation
        """
        return await self._invoice_command(invoice_id, "pay_invoice", partial(self._do_pay, actor_id=actor_id))

    async def _do_pay(self, session: AsyncSession, invoice_id: str, actor_id: str | None) -> _Applied:
        invoice, project = await self._load_invoice(session, invoice_id)
        actor_id = actor_id or project.commissioner_id
        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=invoice.task_id, invoice_ids=[invoice.id])
        if invoice.status == InvoiceStatus.PAID:
            applied.outcome = CommandOutcome.NOOP
            applied.detail = "Invoice is already paid"
            return applied
        if invoice.status not in PAYABLE_STATUSES:
            raise BillingValidationError(f"Invoice {invoice.invoice_number} cannot be paid while {invoice.status}")

        instruction = CreditInstruction(
            idempotency_key=invoice.id,
            recipient_id=project.freelancer_id,
            payer_id=project.commissioner_id,
            amount=invoice.total_amount,
            invoice_number=invoice.invoice_number,
            project_id=project.id,
        )
        invoice.payment_attempts = (invoice.payment_attempts or 0) + 1
        try:
            receipt = await asyncio.wait_for(
                self.ledger.credit(instruction), timeout=self.settings.wallet_timeout_seconds
            )
        except (WalletCreditError, TimeoutError) as exc:
            error = str(exc) or "Wallet ledger did not respond in time"
            # Timeouts are retryable; a decline is final until the ledger says otherwise
            retryable = exc.retryable if isinstance(exc, WalletCreditError) else True
            invoice.last_payment_error = error
            logger.warning(
                "wallet_credit_failed",
                project_id=project.id,
                invoice_id=invoice.id,
                attempt=invoice.payment_attempts,
                error=error,
                retryable=retryable,
            )
            await self._append(
                session,
                applied,
                NewEvent(
                    type=EventType.INVOICE_PAYMENT_FAILED,
                    actor_id=actor_id,
                    entity="invoice",
                    entity_id=invoice.id,
                    metadata={
                        "invoiceNumber": invoice.invoice_number,
                        "amount": str(invoice.total_amount),
                        "error": error,
                        "attempt": invoice.payment_attempts,
                        "retryable": retryable,
                    },
                    context=self._context(project, invoice=invoice),
                ),
            )
            applied.outcome = CommandOutcome.PAYMENT_PENDING
            applied.detail = error
            return applied

        await self._mark_paid(session, project, invoice, receipt.transaction_id, applied)
        return applied

    async def confirm_invoice_payment(self, invoice_id: str, transaction_id: str) -> CommandResponse:
        """Record a ledger confirmation that arrived after a pending payment."""
        return await self._invoice_command(
            invoice_id, "confirm_invoice_payment", partial(self._do_confirm, transaction_id=transaction_id)
        )

    async def _do_confirm(self, session: AsyncSession, invoice_id: str, transaction_id: str) -> _Applied:
        invoice, project = await self._load_invoice(session, invoice_id)
        applied = _Applied(CommandOutcome.APPLIED, project.id, task_id=invoice.task_id, invoice_ids=[invoice.id])
        if invoice.status == InvoiceStatus.PAID:
            if invoice.wallet_transaction_id != transaction_id:
                logger.warning(
                    "payment_confirmation_mismatch",
                    invoice_id=invoice.id,
                    recorded=invoice.wallet_transaction_id,
                    received=transaction_id,
                )
            applied.outcome = CommandOutcome.NOOP
            applied.detail = "Invoice is already paid"
            return applied
        if invoice.status not in PAYABLE_STATUSES:
            raise BillingValidationError(f"Invoice {invoice.invoice_number} cannot be paid while {invoice.status}")

        await self._mark_paid(session, project, invoice, transaction_id, applied)
        return applied

    async def _mark_paid(
        self, session: AsyncSession, project: Project, invoice: Invoice, transaction_id: str, applied: _Applied
    ) -> None:
        self._require_invoice_transition(invoice, InvoiceStatus.PAID)
        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_at = self._now()
        invoice.wallet_transaction_id = transaction_id
        invoice.last_payment_error = None

        await self._append(
            session,
            applied,
            NewEvent(
                type=PAID_EVENT_BY_INVOICE_TYPE.get(invoice.invoice_type, EventType.INVOICE_PAID),
                actor_id=project.commissioner_id,
                target_id=project.freelancer_id,
                entity="invoice",
                entity_id=invoice.id,
                metadata={
                    "projectTitle": project.title,
                    "invoiceNumber": invoice.invoice_number,
                    "amount": str(invoice.total_amount),
                    "transactionId": transaction_id,
                },
                context=self._context(project, invoice=invoice),
            ),
        )
        logger.info(
            "invoice_paid",
            project_id=project.id,
            invoice_id=invoice.id,
            amount=str(invoice.total_amount),
            transaction_id=transaction_id,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _invoice_response(self, invoice: Invoice, now: datetime) -> InvoiceResponse:
        return InvoiceResponse(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            project_id=invoice.project_id,
            task_id=invoice.task_id,
            invoice_type=invoice.invoice_type,
            total_amount=invoice.total_amount,
            status=effective_invoice_status(InvoiceStatus(invoice.status), invoice.due_date, now).value,
            stored_status=invoice.status,
            issued_at=invoice.issued_at,
            due_date=invoice.due_date,
            paid_at=invoice.paid_at,
            cancelled_at=invoice.cancelled_at,
            wallet_transaction_id=invoice.wallet_transaction_id,
            payment_attempts=invoice.payment_attempts or 0,
            last_payment_error=invoice.last_payment_error,
        )

    async def _respond(self, applied: _Applied) -> CommandResponse:
        async with self.session_factory() as session:
            project = await self._get_project(session, applied.project_id)
            task = await session.get(Task, applied.task_id) if applied.task_id else None
            invoices = []
            for invoice_id in applied.invoice_ids:
                invoice = await session.get(Invoice, invoice_id)
                if invoice is not None:
                    invoices.append(invoice)

            now = self._now()
            return CommandResponse(
                outcome=applied.outcome,
                project=ProjectResponse.model_validate(project),
                task=TaskResponse.model_validate(task) if task is not None else None,
                invoices=[self._invoice_response(i, now) for i in invoices],
                event_ids=applied.event_ids,
                detail=applied.detail,
            )

    async def get_project(self, project_id: str) -> ProjectDetailResponse:
        """Project with its tasks, invoices and budget position."""
        async with self.session_factory() as session:
            project = await self._get_project(session, project_id)
            tasks = await self._tasks(session, project_id)
            invoices = await self._invoices(session, project_id)

        now = self._now()
        live = _live(invoices)
        invoiced = _total(live)
        paid = _total([i for i in live if i.status == InvoiceStatus.PAID])

        remaining_for_manual = None
        suggested = None
        if project.payment_phase == PaymentPhase.UPFRONT_PAID:
            manual = [i.total_amount for i in live if i.invoice_type == InvoiceType.MANUAL_COMPLETION_TASK]
            remaining_for_manual = compute_remaining_budget(project.total_budget, manual)
            suggested = min(suggest_manual_invoice_amount(project.total_budget, project.total_tasks), remaining_for_manual)

        return ProjectDetailResponse(
            project=ProjectResponse.model_validate(project),
            tasks=[TaskResponse.model_validate(t) for t in tasks],
            invoices=[self._invoice_response(i, now) for i in invoices],
            budget=BudgetSummary(
                total_budget=project.total_budget,
                invoiced=invoiced,
                paid=paid,
                uninvoiced=project.total_budget - invoiced,
                remaining_for_manual=remaining_for_manual,
                suggested_manual_amount=suggested,
            ),
        )

    async def list_invoices(self, project_id: str) -> list[InvoiceResponse]:
        async with self.session_factory() as session:
            await self._get_project(session, project_id)
            invoices = await self._invoices(session, project_id)
        now = self._now()
        return [self._invoice_response(i, now) for i in invoices]
