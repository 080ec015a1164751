from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from phase_estimator.core.model import DEVELOPMENT_PHASE_ID, Feature, Phase
from phase_estimator.core.rates.rate_catalog import RateCatalog, effective_rate

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer currency unit, halves going up.

    NaN and infinities round to 0.
    """
    if not math.isfinite(value):
        logger.debug("non-finite amount %r rounded to 0", value)
        return 0
    return int(math.floor(value + 0.5))


def phase_man_days(phase: Phase, feature_ledger: Optional[Iterable[Feature]] = None) -> float:
    """Man days to allocate for a phase.

    Development is always the sum of the feature ledger when one is given, whatever
    the phase object carries.
    """
    if phase.id == DEVELOPMENT_PHASE_ID and feature_ledger is not None:
        return sum((f.man_days for f in feature_ledger), 0.0)
    return phase.man_days


def compute_development_g2_cost(
    development_phase: Phase,
    feature_ledger: Optional[Iterable[Feature]],
    supplier_catalog: RateCatalog,
) -> int:
    """G2 cost of the Development phase, aggregated per feature.

    Each feature contributes man_days * rate(feature supplier) * G2%. The grade-level
    G2 selection in the catalog is never consulted here.
    """
    share = development_phase.effort.g2 / 100
    total = 0.0
    for f in feature_ledger or ():
        rate = effective_rate(supplier_catalog.supplier(f.supplier_id)) if f.supplier_id else 0.0
        if rate <= 0:
            logger.debug("feature %s contributes no G2 cost (supplier=%s)", f.id, f.supplier_id)
        total += f.man_days * rate * share
    return round_half_up(total)
