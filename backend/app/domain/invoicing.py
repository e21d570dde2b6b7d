"""Invoice amount calculations for both billing models.

Pure domain functions. No DB access, fully deterministic.

Milestone model: the budget is split evenly across task approvals. Amounts are
rounded down to the cent and the last approval absorbs the remainder, so the
invoices always sum to the budget exactly.

Completion model: 12% upfront at activation, freelancer-initiated manual
invoices against the remaining 88%, and a final settlement for whatever is left
when the project completes.
"""

from collections.abc import Iterable
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from app.core.exceptions import BillingValidationError, InvariantViolationError

CENT = Decimal("0.01")

# Completion split. Change here only.
COMPLETION_UPFRONT_RATIO = Decimal("0.12")
COMPLETION_REMAINDER_RATIO = Decimal("1") - COMPLETION_UPFRONT_RATIO


def to_money(value) -> Decimal:
    """Quantize any numeric input to cents (half-up)."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _require_budget(total_budget: Decimal) -> Decimal:
    budget = to_money(total_budget)
    if budget <= 0:
        raise BillingValidationError("Total budget must be positive")
    return budget


def _require_tasks(total_tasks: int) -> int:
    if total_tasks is None or int(total_tasks) <= 0:
        raise BillingValidationError("Total tasks must be positive")
    return int(total_tasks)


# ---------------------------------------------------------------------------
# Milestone model
# ---------------------------------------------------------------------------


def compute_milestone_amount(total_budget: Decimal, total_tasks: int) -> Decimal:
    """Even per-task share of the budget, rounded down to the cent."""
    budget = _require_budget(total_budget)
    tasks = _require_tasks(total_tasks)
    return (budget / tasks).quantize(CENT, rounding=ROUND_DOWN)


def milestone_amount_for_task(
    total_budget: Decimal,
    total_tasks: int,
    invoiced_count: int,
    invoiced_total: Decimal,
) -> Decimal:
    """Amount for the next milestone invoice on a project.

    Args:
        total_budget: Project budget
        total_tasks: Number of billable tasks
        invoiced_count: Milestone invoices already issued, cancelled ones included
        invoiced_total: Sum of those invoices, cancelled ones included

    Returns:
        The even share, or the exact remainder for the last billable task

    Raises:
        BillingValidationError: Every task has already been invoiced
    """
    budget = _require_budget(total_budget)
    tasks = _require_tasks(total_tasks)

    if invoiced_count >= tasks:
        raise BillingValidationError(f"All {tasks} milestones have already been invoiced")

    if invoiced_count == tasks - 1:
        return to_money(budget - to_money(invoiced_total))
    return compute_milestone_amount(budget, tasks)


# ---------------------------------------------------------------------------
# Completion model
# ---------------------------------------------------------------------------


def compute_upfront_amount(total_budget: Decimal) -> Decimal:
    """Upfront payment issued once at activation."""
    return to_money(_require_budget(total_budget) * COMPLETION_UPFRONT_RATIO)


def compute_remaining_budget(total_budget: Decimal, manual_amounts: Iterable[Decimal]) -> Decimal:
    """Budget still available for manual invoices and final settlement.

    Equals total * 0.88 - sum(manual), with the upfront rounding absorbed
    here so upfront + manual + final sums to the budget exactly.
    """
    budget = _require_budget(total_budget)
    invoiced = sum((to_money(a) for a in manual_amounts), Decimal("0"))
    return to_money(budget - compute_upfront_amount(budget) - invoiced)


def validate_manual_amount(amount: Decimal, remaining_budget: Decimal) -> Decimal:
    """Check a freelancer-supplied manual invoice amount.

    Raises:
        BillingValidationError: amount is not positive or exceeds remaining budget
    """
    try:
        value = to_money(amount)
    except ArithmeticError:
        raise BillingValidationError(f"Invalid invoice amount: {amount}") from None

    if value <= 0:
        raise BillingValidationError("Invoice amount must be positive")
    if value > remaining_budget:
        raise BillingValidationError(
            f"Invoice amount {value} exceeds remaining budget {to_money(remaining_budget)}"
        )
    return value


def compute_final_amount(project_id: str, total_budget: Decimal, manual_amounts: Iterable[Decimal]) -> Decimal:
    """Final settlement at project completion.

    Raises:
        InvariantViolationError: Manual invoices exceed the 88% share. That can
            only happen through an upstream accounting bug and is never clamped.
    """
    final = compute_remaining_budget(total_budget, manual_amounts)
    if final < 0:
        raise InvariantViolationError(project_id, f"final settlement would be negative ({final})")
    return final


def suggest_manual_invoice_amount(total_budget: Decimal, total_tasks: int) -> Decimal:
    """Default per-task manual invoice amount offered to the freelancer."""
    budget = _require_budget(total_budget)
    tasks = _require_tasks(total_tasks)
    return (budget * COMPLETION_REMAINDER_RATIO / tasks).quantize(CENT, rounding=ROUND_DOWN)
