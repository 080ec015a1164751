from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from phase_estimator.core.errors import EstimateValidationError
from phase_estimator.core.features.ledger import FeatureLedger
from phase_estimator.core.model import (
    GRADES,
    Effort,
    EffortStatus,
    Grade,
    Phase,
    PhaseDefinition,
)
from phase_estimator.core.phases.definitions import DEFAULT_PHASE_DEFINITIONS

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PhaseStore:
    """Live phase state for one project.

    Man-days of calculated phases (Development) have no storage: every read sums the
    feature ledger, so a ledger mutation is visible on the next read.
    """

    def __init__(
        self,
        ledger: FeatureLedger,
        definitions: Iterable[PhaseDefinition] = DEFAULT_PHASE_DEFINITIONS,
    ) -> None:
        self.ledger = ledger
        self._definitions: dict[str, PhaseDefinition] = {d.id: d for d in definitions}
        self._man_days: dict[str, float] = {}
        self._effort: dict[str, Effort] = {}
        self._last_modified: dict[str, datetime] = {}
        self.reset()

    @classmethod
    def from_defaults(
        cls,
        ledger: FeatureLedger,
        definitions: Iterable[PhaseDefinition] = DEFAULT_PHASE_DEFINITIONS,
    ) -> "PhaseStore":
        store = cls(ledger, definitions)
        logger.info("seeded %d phases from defaults", len(store._definitions))
        return store

    @classmethod
    def from_project(
        cls,
        project_phases: dict[str, Any],
        ledger: FeatureLedger,
        definitions: Iterable[PhaseDefinition] = DEFAULT_PHASE_DEFINITIONS,
    ) -> "PhaseStore":
        """Restore phases from persisted project data.

        Unknown keys (including `selectedSuppliers`) are skipped; missing phases keep their
        defaults. A persisted Development man-days value is ignored.
        """
        store = cls(ledger, definitions)
        restored = 0
        for pid, d in store._definitions.items():
            existing = project_phases.get(pid)
            if not isinstance(existing, dict):
                continue
            restored += 1
            if not d.calculated:
                store._man_days[pid] = float(existing.get("manDays") or 0)
            effort = existing.get("effort")
            if isinstance(effort, dict):
                store._effort[pid] = Effort.from_mapping(effort)
            last_modified = existing.get("lastModified")
            if isinstance(last_modified, str):
                try:
                    store._last_modified[pid] = datetime.fromisoformat(last_modified.replace("Z", "+00:00"))
                except ValueError:
                    logger.debug("ignoring unparseable lastModified for phase %s: %s", pid, last_modified)
            elif isinstance(last_modified, datetime):
                store._last_modified[pid] = last_modified
        logger.info("restored %d of %d phases from project data", restored, len(store._definitions))
        return store

    @property
    def definitions(self) -> list[PhaseDefinition]:
        return list(self._definitions.values())

    def phase(self, phase_id: str) -> Phase:
        d = self._definition(phase_id)
        return Phase(
            id=d.id,
            name=d.name,
            man_days=self.ledger.total_man_days() if d.calculated else self._man_days[d.id],
            effort=self._effort[d.id],
            calculated=d.calculated,
            last_modified=self._last_modified.get(d.id),
        )

    def snapshot(self) -> list[Phase]:
        return [self.phase(pid) for pid in self._definitions]

    def set_man_days(self, phase_id: str, value: float) -> None:
        d = self._definition(phase_id)
        if d.calculated:
            raise EstimateValidationError(
                code="E_CALCULATED_PHASE",
                message=f"man days of {phase_id} are calculated from the features list",
                path=f"phases.{phase_id}.manDays",
            )
        self._man_days[phase_id] = value
        self._touch(phase_id)

    def set_effort(self, phase_id: str, grade: Grade, value: float) -> None:
        self._definition(phase_id)
        if grade not in GRADES:
            raise EstimateValidationError(
                code="E_UNKNOWN_GRADE",
                message=f"grade must be one of {list(GRADES)}",
                path=f"phases.{phase_id}.effort",
            )
        self._effort[phase_id] = self._effort[phase_id].replace(grade, value)
        self._touch(phase_id)

    def reset(self) -> None:
        for pid, d in self._definitions.items():
            self._man_days[pid] = 0.0
            self._effort[pid] = d.default_effort
        self._last_modified = {pid: _now() for pid in self._definitions}

    def to_project_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for p in self.snapshot():
            out[p.id] = {
                "manDays": p.man_days,
                "effort": dict(p.effort.as_dict()),
                "calculated": p.calculated,
                "lastModified": p.last_modified.isoformat() if p.last_modified else None,
            }
        return out

    def _definition(self, phase_id: str) -> PhaseDefinition:
        d = self._definitions.get(phase_id)
        if d is None:
            raise EstimateValidationError(
                code="E_UNKNOWN_PHASE",
                message=f"unknown phase id: {phase_id}",
                path="phases",
            )
        return d

    def _touch(self, phase_id: str) -> None:
        self._last_modified[phase_id] = _now()


def effort_status(phase: Phase) -> EffortStatus:
    total = phase.effort.total()
    if math.isclose(total, 100):
        return "valid"
    return "invalid" if total > 100 else "warning"


def validate_phases(
    phases: Iterable[Phase], file: Optional[str] = None
) -> list[EstimateValidationError]:
    """Edit-boundary checks: negative man days, effort outside [0, 100].

    The allocation engine computes regardless; callers decide what to do with these.
    """
    errors: list[EstimateValidationError] = []
    for p in phases:
        if p.man_days < 0:
            errors.append(
                EstimateValidationError(
                    code="E_NEGATIVE_MAN_DAYS",
                    message=f"{p.name}: man days cannot be negative",
                    file=file,
                    path=f"phases.{p.id}.manDays",
                )
            )
        for g in GRADES:
            value = p.effort.get(g)
            if value < 0 or value > 100:
                errors.append(
                    EstimateValidationError(
                        code="E_EFFORT_OUT_OF_RANGE",
                        message=f"{p.name}: {g} effort must be between 0-100%",
                        file=file,
                        path=f"phases.{p.id}.effort.{g}",
                    )
                )
    return errors
