"""Financial rollup engine.

Materials are realized as soon as they are on record. Labor and other costs
are realized in proportion to task progress, so "spent so far" tracks
physical progress rather than invoice timing. At 100% progress current spend
equals the approved budget exactly and nothing remains.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel

from optruth.core.numbers import round_half_up, to_cents
from optruth.models import TaskRecord

ZERO = Decimal("0")
ONE = Decimal("1")
DEFAULT_TAX_RATE = Decimal("0.13")

# Share of the approved budget at which spend is flagged
WARNING_SPEND_RATIO = Decimal("0.7")
CRITICAL_SPEND_RATIO = Decimal("0.9")


class FinancialSummary(BaseModel):
    """Derived on every read; never persisted as ground truth."""

    currency: str = "CAD"
    material_cost: Decimal
    labor_cost: Decimal
    other_cost: Decimal
    planned_task_cost: Decimal
    completed_task_cost: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    approved_budget: Decimal
    current_spend: Decimal
    remaining_budget: Decimal
    realized_labor_cost: Decimal
    realized_other_cost: Decimal
    remaining_labor_cost: Decimal
    remaining_other_cost: Decimal
    completed_work_value: Decimal
    progress_ratio: Decimal
    progress_percent: int
    is_project_complete: bool
    is_within_range: bool
    has_unexpected_costs: bool
    cost_stability: Literal["stable", "warning", "critical"]
    is_draft: bool = True


def progress_ratio(tasks: Sequence[TaskRecord], basis: str = "cost") -> Decimal:
    """Fraction of task value completed, capped at 1.

    With ``basis="cost"`` the ratio is cost-weighted and falls back to task
    counts when every task is free. ``basis="count"`` always uses counts.
    """
    if not tasks:
        return ZERO

    if basis == "cost":
        planned = sum((t.cost for t in tasks), ZERO)
        if planned > 0:
            completed = sum((t.cost for t in tasks if t.is_completed), ZERO)
            return min(ONE, completed / planned)

    done = sum(1 for t in tasks if t.is_completed)
    return min(ONE, Decimal(done) / Decimal(len(tasks)))


def _stability(
    current_spend: Decimal, approved_budget: Decimal, complete: bool
) -> Literal["stable", "warning", "critical"]:
    if complete and current_spend <= approved_budget:
        return "stable"
    if current_spend <= approved_budget * WARNING_SPEND_RATIO:
        return "stable"
    if current_spend <= approved_budget * CRITICAL_SPEND_RATIO:
        return "warning"
    return "critical"


def compute_financial_summary(
    material_cost: Decimal,
    labor_cost: Decimal = ZERO,
    other_cost: Decimal = ZERO,
    tasks: Sequence[TaskRecord] = (),
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    approved_budget: Optional[Decimal] = None,
    progress_basis: str = "cost",
    is_draft: bool = True,
    currency: str = "CAD",
) -> FinancialSummary:
    """Roll up ledger and task costs into the owner-facing summary.

    Args:
        material_cost: Ledger total (realized immediately)
        labor_cost: Planned labor, realized with progress
        other_cost: Planned other costs, realized with progress
        tasks: Project tasks with status and cost
        tax_rate: Sales tax applied to every subtotal
        approved_budget: Owner-approved budget; defaults to the grand total
        progress_basis: "cost" (count fallback) or "count"
        is_draft: Whether the ledger is still editable
        currency: ISO currency code for display
    """
    planned_tasks = sum((t.cost for t in tasks), ZERO)
    completed_tasks = sum((t.cost for t in tasks if t.is_completed), ZERO)
    ratio = progress_ratio(tasks, progress_basis)

    subtotal = material_cost + labor_cost + other_cost + planned_tasks
    tax_amount = subtotal * tax_rate
    grand_total = to_cents(subtotal + tax_amount)

    budget = to_cents(approved_budget) if approved_budget is not None else grand_total

    realized_labor = labor_cost * ratio
    realized_other = other_cost * ratio
    realized_subtotal = material_cost + completed_tasks + realized_labor + realized_other

    complete = ratio >= ONE
    if complete:
        current_spend = budget
        remaining = ZERO
    else:
        current_spend = to_cents(realized_subtotal * (ONE + tax_rate))
        remaining = max(ZERO, budget - current_spend)

    return FinancialSummary(
        currency=currency,
        material_cost=to_cents(material_cost),
        labor_cost=to_cents(labor_cost),
        other_cost=to_cents(other_cost),
        planned_task_cost=to_cents(planned_tasks),
        completed_task_cost=to_cents(completed_tasks),
        subtotal=to_cents(subtotal),
        tax_rate=tax_rate,
        tax_amount=to_cents(tax_amount),
        grand_total=grand_total,
        approved_budget=budget,
        current_spend=current_spend,
        remaining_budget=to_cents(remaining),
        realized_labor_cost=to_cents(realized_labor),
        realized_other_cost=to_cents(realized_other),
        remaining_labor_cost=to_cents(labor_cost - realized_labor),
        remaining_other_cost=to_cents(other_cost - realized_other),
        completed_work_value=to_cents(realized_labor + realized_other + completed_tasks),
        progress_ratio=ratio,
        progress_percent=round_half_up(ratio * 100),
        is_project_complete=complete,
        is_within_range=current_spend <= budget,
        has_unexpected_costs=(
            current_spend > budget
            if complete
            else current_spend > budget * CRITICAL_SPEND_RATIO
        ),
        cost_stability=_stability(current_spend, budget, complete),
        is_draft=is_draft,
    )
