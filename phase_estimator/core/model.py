from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping, Optional


Grade = Literal["G1", "G2", "TA", "PM"]
GRADES: tuple[Grade, ...] = ("G1", "G2", "TA", "PM")

DEVELOPMENT_PHASE_ID = "development"

PhaseType = Literal["analysis", "development", "testing", "support"]
EffortStatus = Literal["valid", "warning", "invalid"]


@dataclass(frozen=True)
class Effort:
    """Per-grade effort percentages for one phase.

    Values are applied independently per grade; they are not required to sum to 100.
    """

    g1: float = 0.0
    g2: float = 0.0
    ta: float = 0.0
    pm: float = 0.0

    def get(self, grade: Grade) -> float:
        return getattr(self, grade.lower())

    def replace(self, grade: Grade, value: float) -> "Effort":
        values = self.as_dict()
        values[grade] = value
        return Effort.from_mapping(values)

    def total(self) -> float:
        return self.g1 + self.g2 + self.ta + self.pm

    def as_dict(self) -> dict[Grade, float]:
        return {g: self.get(g) for g in GRADES}

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Effort":
        # Missing grades count as 0.
        return cls(
            g1=float(values.get("G1") or 0),
            g2=float(values.get("G2") or 0),
            ta=float(values.get("TA") or 0),
            pm=float(values.get("PM") or 0),
        )


@dataclass(frozen=True)
class Feature:
    id: str
    supplier_id: Optional[str]
    man_days: float
    description: Optional[str] = None


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str
    real_rate: Optional[float] = None
    official_rate: Optional[float] = None
    role: Optional[str] = None
    department: Optional[str] = None
    internal: bool = False


@dataclass(frozen=True)
class PhaseDefinition:
    id: str
    name: str
    description: str
    type: PhaseType
    default_effort: Effort
    calculated: bool = False


@dataclass(frozen=True)
class Phase:
    id: str
    name: str
    man_days: float
    effort: Effort
    calculated: bool = False
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class PhaseAllocation:
    phase_id: str
    man_days_by_grade: dict[Grade, float]
    cost_by_grade: dict[Grade, int]

    @property
    def total_cost(self) -> int:
        return sum(self.cost_by_grade.values())


@dataclass(frozen=True)
class ProjectTotals:
    man_days: float
    man_days_by_grade: dict[Grade, float]
    cost_by_grade: dict[Grade, int]
    allocations: list[PhaseAllocation] = field(default_factory=list)

    @property
    def total_cost(self) -> int:
        return sum(self.cost_by_grade.values())


@dataclass(frozen=True)
class VendorCost:
    vendor_id: str
    vendor: str
    role: Grade
    department: str
    man_days: float
    rate: float
    official_rate: float
    cost: float
    final_man_days: int
    internal: bool = False


@dataclass(frozen=True)
class CostGroupKpi:
    internal: float
    external: float

    @property
    def total(self) -> float:
        return self.internal + self.external

    @property
    def internal_percentage(self) -> float:
        return (self.internal / self.total) * 100 if self.total > 0 else 0.0

    @property
    def external_percentage(self) -> float:
        return (self.external / self.total) * 100 if self.total > 0 else 0.0


@dataclass(frozen=True)
class CostKpis:
    gto: CostGroupKpi  # G2 + TA
    gds: CostGroupKpi  # G1 + PM
