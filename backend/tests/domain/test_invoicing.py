"""Tests for invoice amount calculations (pure, no DB)."""

from decimal import Decimal

import pytest

from app.core.exceptions import BillingValidationError, InvariantViolationError
from app.domain.invoicing import (
    COMPLETION_REMAINDER_RATIO,
    COMPLETION_UPFRONT_RATIO,
    compute_final_amount,
    compute_milestone_amount,
    compute_remaining_budget,
    compute_upfront_amount,
    milestone_amount_for_task,
    suggest_manual_invoice_amount,
    to_money,
    validate_manual_amount,
)

pytestmark = pytest.mark.unit


def test_completion_split_is_twelve_eighty_eight():
    assert COMPLETION_UPFRONT_RATIO == Decimal("0.12")
    assert COMPLETION_UPFRONT_RATIO + COMPLETION_REMAINDER_RATIO == 1


def test_milestone_amount_even_split():
    assert compute_milestone_amount(Decimal("300"), 3) == Decimal("100.00")


def test_milestone_amount_rounds_down():
    assert compute_milestone_amount(Decimal("1000"), 3) == Decimal("333.33")


def test_last_milestone_takes_remainder():
    shares = []
    for invoiced in range(3):
        shares.append(milestone_amount_for_task(Decimal("1000"), 3, invoiced, sum(shares, Decimal("0"))))
    assert shares == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
    assert sum(shares) == Decimal("1000.00")


def test_milestone_amount_when_all_invoiced():
    with pytest.raises(BillingValidationError, match="already been invoiced"):
        milestone_amount_for_task(Decimal("300"), 3, 3, Decimal("300"))


@pytest.mark.parametrize("budget,tasks", [(Decimal("0"), 3), (Decimal("-5"), 3), (Decimal("100"), 0)])
def test_milestone_amount_rejects_bad_inputs(budget, tasks):
    with pytest.raises(BillingValidationError):
        compute_milestone_amount(budget, tasks)


def test_upfront_amount():
    assert compute_upfront_amount(Decimal("1000")) == Decimal("120.00")
    assert compute_upfront_amount(Decimal("333.33")) == Decimal("40.00")


def test_remaining_budget_after_manual_invoices():
    assert compute_remaining_budget(Decimal("1000"), []) == Decimal("880.00")
    assert compute_remaining_budget(Decimal("1000"), [Decimal("300"), Decimal("280")]) == Decimal("300.00")


def test_upfront_rounding_is_absorbed_by_remainder():
    budget = Decimal("333.33")
    assert compute_upfront_amount(budget) + compute_remaining_budget(budget, []) == budget


def test_manual_amount_within_remaining():
    assert validate_manual_amount(Decimal("300"), Decimal("880.00")) == Decimal("300.00")
    assert validate_manual_amount("880", Decimal("880.00")) == Decimal("880.00")


def test_manual_amount_exceeding_remaining():
    with pytest.raises(BillingValidationError) as exc_info:
        validate_manual_amount(Decimal("900"), Decimal("880"))
    assert exc_info.value.reason == "Invoice amount 900.00 exceeds remaining budget 880.00"


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10"), Decimal("0.001")])
def test_manual_amount_must_be_positive(amount):
    with pytest.raises(BillingValidationError, match="must be positive"):
        validate_manual_amount(amount, Decimal("880"))


def test_manual_amount_not_a_number():
    with pytest.raises(BillingValidationError, match="Invalid invoice amount"):
        validate_manual_amount("abc", Decimal("880"))


def test_final_amount():
    final = compute_final_amount("p-1", Decimal("1000"), [Decimal("300"), Decimal("280")])
    assert final == Decimal("300.00")
    assert Decimal("120.00") + Decimal("300") + Decimal("280") + final == Decimal("1000")


def test_final_amount_is_zero_when_fully_invoiced():
    assert compute_final_amount("p-1", Decimal("1000"), [Decimal("880")]) == Decimal("0.00")


def test_negative_final_amount_is_an_invariant_violation():
    with pytest.raises(InvariantViolationError) as exc_info:
        compute_final_amount("p-1", Decimal("1000"), [Decimal("500"), Decimal("500")])
    assert exc_info.value.project_id == "p-1"
    assert "negative" in exc_info.value.detail


def test_suggested_manual_amount():
    assert suggest_manual_invoice_amount(Decimal("1000"), 3) == Decimal("293.33")


def test_to_money_quantizes_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(7) == Decimal("7.00")
