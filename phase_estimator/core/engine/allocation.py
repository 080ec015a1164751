from __future__ import annotations

from typing import Iterable, Optional

from phase_estimator.core.engine.development import (
    compute_development_g2_cost,
    phase_man_days,
    round_half_up,
)
from phase_estimator.core.model import (
    DEVELOPMENT_PHASE_ID,
    GRADES,
    Effort,
    Feature,
    Grade,
    Phase,
    PhaseAllocation,
    ProjectTotals,
)
from phase_estimator.core.rates.rate_catalog import RateCatalog


def compute_man_days_by_grade(man_days: float, effort: Effort) -> dict[Grade, float]:
    # Each grade independently; grades do not partition the phase man days.
    return {g: man_days * effort.get(g) / 100 for g in GRADES}


def compute_phase_allocation(
    phase: Phase,
    rate_catalog: RateCatalog,
    feature_ledger: Optional[Iterable[Feature]] = None,
) -> PhaseAllocation:
    """Man days and cost per grade for one phase.

    No clamping or validation: whatever the phase holds is computed literally.
    For Development, man days are the feature ledger sum when a ledger is given, and
    G2 cost comes from the per-feature suppliers instead of the selected G2 supplier.
    """
    features = list(feature_ledger) if feature_ledger is not None else None
    man_days_by_grade = compute_man_days_by_grade(phase_man_days(phase, features), phase.effort)
    cost_by_grade: dict[Grade, int] = {
        g: round_half_up(man_days_by_grade[g] * rate_catalog.resolve_rate(g)) for g in GRADES
    }
    if phase.id == DEVELOPMENT_PHASE_ID:
        cost_by_grade["G2"] = compute_development_g2_cost(phase, features, rate_catalog)
    return PhaseAllocation(
        phase_id=phase.id,
        man_days_by_grade=man_days_by_grade,
        cost_by_grade=cost_by_grade,
    )


def compute_phase_total_cost(
    phase: Phase,
    rate_catalog: RateCatalog,
    feature_ledger: Optional[Iterable[Feature]] = None,
) -> int:
    return compute_phase_allocation(phase, rate_catalog, feature_ledger).total_cost


def compute_project_totals(
    phases: Iterable[Phase],
    rate_catalog: RateCatalog,
    feature_ledger: Optional[Iterable[Feature]] = None,
) -> ProjectTotals:
    """Element-wise sums of every phase allocation, plus the grand total."""
    features = list(feature_ledger) if feature_ledger is not None else None
    man_days = 0.0
    man_days_by_grade: dict[Grade, float] = {g: 0.0 for g in GRADES}
    cost_by_grade: dict[Grade, int] = {g: 0 for g in GRADES}
    allocations: list[PhaseAllocation] = []

    for phase in phases:
        a = compute_phase_allocation(phase, rate_catalog, features)
        allocations.append(a)
        man_days += phase_man_days(phase, features)
        for g in GRADES:
            man_days_by_grade[g] += a.man_days_by_grade[g]
            cost_by_grade[g] += a.cost_by_grade[g]

    return ProjectTotals(
        man_days=man_days,
        man_days_by_grade=man_days_by_grade,
        cost_by_grade=cost_by_grade,
        allocations=allocations,
    )
