from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from phase_estimator.core.engine.development import phase_man_days, round_half_up
from phase_estimator.core.model import (
    DEVELOPMENT_PHASE_ID,
    GRADES,
    CostGroupKpi,
    CostKpis,
    Feature,
    Grade,
    Phase,
    Supplier,
    VendorCost,
)
from phase_estimator.core.rates.rate_catalog import RateCatalog, effective_rate

logger = logging.getLogger(__name__)

GTO_ROLES: frozenset[str] = frozenset({"G2", "TA"})
GDS_ROLES: frozenset[str] = frozenset({"G1", "PM"})


def compute_vendor_costs(
    phases: Iterable[Phase],
    rate_catalog: RateCatalog,
    feature_ledger: Optional[Iterable[Feature]] = None,
) -> list[VendorCost]:
    """Break project cost down by concrete supplier and role.

    Grade selections carry every phase except Development G2, which is charged to the
    supplier of each feature. Rows for the same (vendor, role, department) are merged.
    """
    phase_list = list(phases)
    features = list(feature_ledger) if feature_ledger is not None else None
    rows: dict[tuple[str, str, str], VendorCost] = {}

    for grade in GRADES:
        supplier = rate_catalog.supplier_for(grade)
        if supplier is None:
            continue
        man_days = 0.0
        for p in phase_list:
            if p.id == DEVELOPMENT_PHASE_ID and grade == "G2":
                continue
            man_days += phase_man_days(p, features) * p.effort.get(grade) / 100
        if man_days > 0:
            _add(rows, supplier, grade, man_days)

    development = next((p for p in phase_list if p.id == DEVELOPMENT_PHASE_ID), None)
    g2_percent = development.effort.g2 if development is not None else 0.0
    if g2_percent:
        for f in features or ():
            if not f.supplier_id:
                logger.debug("feature %s has no supplier", f.id)
                continue
            supplier = rate_catalog.supplier(f.supplier_id)
            if supplier is None:
                continue
            g2_man_days = f.man_days * g2_percent / 100
            if g2_man_days > 0:
                _add(rows, supplier, "G2", g2_man_days)

    return sorted(rows.values(), key=lambda r: (r.vendor, r.role))


def compute_cost_kpis(vendor_costs: Iterable[VendorCost]) -> CostKpis:
    """GTO (G2, TA) and GDS (G1, PM) cost split between internal and external resources."""
    sums = {
        ("gto", True): 0.0,
        ("gto", False): 0.0,
        ("gds", True): 0.0,
        ("gds", False): 0.0,
    }
    for vc in vendor_costs:
        group = "gto" if vc.role in GTO_ROLES else "gds" if vc.role in GDS_ROLES else None
        if group is None:
            continue
        sums[(group, vc.internal)] += vc.final_man_days * vc.official_rate

    return CostKpis(
        gto=CostGroupKpi(internal=sums[("gto", True)], external=sums[("gto", False)]),
        gds=CostGroupKpi(internal=sums[("gds", True)], external=sums[("gds", False)]),
    )


def _add(rows: dict[tuple[str, str, str], VendorCost], supplier: Supplier, role: Grade, man_days: float) -> None:
    department = supplier.department or "Unknown"
    key = (supplier.name, role, department)
    rate = effective_rate(supplier)
    official_rate = float(supplier.official_rate or 0)
    cost = man_days * rate

    existing = rows.get(key)
    if existing is not None:
        man_days += existing.man_days
        cost += existing.cost
        official_rate = existing.official_rate
        rows[key] = replace(
            existing,
            man_days=man_days,
            cost=cost,
            final_man_days=_final_man_days(cost, official_rate),
        )
        return

    rows[key] = VendorCost(
        vendor_id=supplier.id,
        vendor=supplier.name,
        role=role,
        department=department,
        man_days=man_days,
        rate=rate,
        official_rate=official_rate,
        cost=cost,
        final_man_days=_final_man_days(cost, official_rate),
        internal=supplier.internal,
    )


def _final_man_days(cost: float, official_rate: float) -> int:
    # Man days re-expressed at the official rate.
    return round_half_up(cost / official_rate) if official_rate > 0 else 0
