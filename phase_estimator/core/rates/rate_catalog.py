from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from phase_estimator.core.model import GRADES, Grade, Supplier

logger = logging.getLogger(__name__)


def effective_rate(supplier: Optional[Supplier]) -> float:
    """Daily rate used for calculation: real rate when present, else official rate, else 0."""
    if supplier is None:
        return 0.0
    if supplier.real_rate is not None:
        return float(supplier.real_rate)
    if supplier.official_rate is not None:
        return float(supplier.official_rate)
    return 0.0


@dataclass(frozen=True)
class RateCatalog:
    """Read-only snapshot of suppliers and the grade -> supplier selection.

    Passed explicitly to every calculation. Absence of a rate resolves to 0.
    """

    suppliers: dict[str, Supplier] = field(default_factory=dict)
    selected_suppliers: dict[Grade, Optional[str]] = field(default_factory=dict)

    def supplier(self, supplier_id: str) -> Optional[Supplier]:
        found = self.suppliers.get(supplier_id)
        if found is None:
            logger.debug("unknown supplier id: %s", supplier_id)
        return found

    def supplier_for(self, ref: str) -> Optional[Supplier]:
        """Supplier behind a grade (via the selection) or a raw supplier id."""
        if ref in GRADES:
            supplier_id = self.selected_suppliers.get(ref)  # type: ignore[call-overload]
            if not supplier_id:
                logger.debug("no supplier selected for grade %s", ref)
                return None
            ref = supplier_id
        return self.supplier(ref)

    def resolve_rate(self, ref: str) -> float:
        """Resolve a grade (via the selection) or a raw supplier id to a daily rate."""
        return effective_rate(self.supplier_for(ref))

    def with_selection(self, grade: Grade, supplier_id: Optional[str]) -> "RateCatalog":
        selected = dict(self.selected_suppliers)
        selected[grade] = supplier_id
        return RateCatalog(suppliers=self.suppliers, selected_suppliers=selected)


def build_rate_catalog(
    suppliers: Iterable[Supplier] = (),
    internal_resources: Iterable[Supplier] = (),
    selected: Optional[dict[Grade, Optional[str]]] = None,
) -> RateCatalog:
    """Merge external suppliers and internal resources into one catalog.

    Internal resources are flagged `internal=True`. On id clashes the later entry wins.
    """
    merged: dict[str, Supplier] = {}
    for s in suppliers:
        merged[s.id] = s
    for r in internal_resources:
        merged[r.id] = r if r.internal else Supplier(
            id=r.id,
            name=r.name,
            real_rate=r.real_rate,
            official_rate=r.official_rate,
            role=r.role,
            department=r.department,
            internal=True,
        )

    selection: dict[Grade, Optional[str]] = {g: None for g in GRADES}
    if selected:
        for g in GRADES:
            selection[g] = selected.get(g)
    return RateCatalog(suppliers=merged, selected_suppliers=selection)
