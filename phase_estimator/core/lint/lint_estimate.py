from __future__ import annotations

from typing import Any, Optional

from phase_estimator.core.errors import EstimateValidationError, Severity
from phase_estimator.core.model import DEVELOPMENT_PHASE_ID, GRADES
from phase_estimator.core.phases.store import effort_status
from phase_estimator.core.rates.rate_catalog import effective_rate
from phase_estimator.core.validate.validate_estimate import EstimateSnapshot


# Estimate lint rules. These never block calculation; the engine computes literally.
# - L_EFFORT_OVER_100 (error): phase effort total above 100%
# - L_EFFORT_UNDER_100 (warning): phase effort total below 100%
# - L_UNRESOLVED_SUPPLIER (warning): feature supplier missing or not in the catalog
# - L_GRADE_WITHOUT_SUPPLIER (warning): no (known) supplier selected for a grade
# - L_ZERO_RATE (warning): referenced supplier has no positive rate
# - L_DEVELOPMENT_MAN_DAYS_IGNORED (warning): persisted development man days differ from the features sum


def lint_estimate(doc: dict[str, Any], snapshot: EstimateSnapshot) -> list[EstimateValidationError]:
    """Lint a validated estimate.

    `doc` is the raw document (for persisted values the snapshot discards); `snapshot`
    is what the engine will compute on.
    """

    file = _cast_optional_str(doc.get("__file__"))
    findings: list[EstimateValidationError] = []
    catalog = snapshot.rate_catalog

    def add(code: str, message: str, path: str, severity: Severity = "warning") -> None:
        findings.append(
            EstimateValidationError(code=code, message=message, file=file, path=path, severity=severity)
        )

    # Rule: effort distribution totals
    for phase in snapshot.store.snapshot():
        status = effort_status(phase)
        total = phase.effort.total()
        if status == "invalid":
            add(
                "L_EFFORT_OVER_100",
                f"{phase.name}: effort total is {total:g}% (over 100%)",
                f"phases.{phase.id}.effort",
                severity="error",
            )
        elif status == "warning":
            add(
                "L_EFFORT_UNDER_100",
                f"{phase.name}: effort total is {total:g}% (under 100%)",
                f"phases.{phase.id}.effort",
            )

    # Rule: feature suppliers must resolve
    for i, f in enumerate(snapshot.ledger):
        path = f"features[{i}].supplier"
        if not f.supplier_id:
            add("L_UNRESOLVED_SUPPLIER", f"feature {f.id} has no supplier; its G2 cost is 0", path)
            continue
        supplier = catalog.supplier(f.supplier_id)
        if supplier is None:
            add(
                "L_UNRESOLVED_SUPPLIER",
                f"feature {f.id} references unknown supplier: {f.supplier_id}",
                path,
            )
        elif effective_rate(supplier) <= 0:
            add("L_ZERO_RATE", f"supplier {supplier.id} has no positive rate", path)

    # Rule: every grade should have a known supplier selected
    for g in GRADES:
        path = f"phases.selectedSuppliers.{g}"
        selected = catalog.selected_suppliers.get(g)
        if not selected:
            add("L_GRADE_WITHOUT_SUPPLIER", f"no supplier selected for {g}; its cost is 0", path)
            continue
        supplier = catalog.supplier_for(g)
        if supplier is None:
            add("L_GRADE_WITHOUT_SUPPLIER", f"{g} selection references unknown supplier: {selected}", path)
        elif effective_rate(supplier) <= 0:
            add("L_ZERO_RATE", f"supplier {supplier.id} selected for {g} has no positive rate", path)

    # Rule: a persisted development man days figure is never used
    raw_phases = doc.get("phases")
    if isinstance(raw_phases, dict):
        raw_dev = raw_phases.get(DEVELOPMENT_PHASE_ID)
        if isinstance(raw_dev, dict) and raw_dev.get("manDays") is not None:
            persisted = raw_dev.get("manDays")
            derived = snapshot.ledger.total_man_days()
            if persisted != derived:
                add(
                    "L_DEVELOPMENT_MAN_DAYS_IGNORED",
                    f"development manDays {persisted} ignored; features sum to {derived:g}",
                    f"phases.{DEVELOPMENT_PHASE_ID}.manDays",
                )

    return _sorted(findings)


def has_errors(findings: list[EstimateValidationError]) -> bool:
    return any(f.is_error for f in findings)


def _sorted(findings: list[EstimateValidationError]) -> list[EstimateValidationError]:
    return sorted(findings, key=lambda f: (f.file or "", f.path or "", f.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
