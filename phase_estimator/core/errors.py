from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class EstimateError(Exception):
    """Coded problem with an estimate document or an edit to it.

    `path` is the dotted location inside the document (`features[1].manDays`,
    `phases.vapt.effort.TA`). Load and validation problems are always errors; lint
    findings may be downgraded to warnings.
    """

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None
    severity: Severity = "error"

    @property
    def location(self) -> str:
        parts = [p for p in (self.file, self.path) if p]
        return ":".join(parts) if parts else "<estimate>"

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def __str__(self) -> str:
        return f"{self.location}: {self.code}: {self.message}"


class EstimateLoadError(EstimateError):
    pass


class EstimateValidationError(EstimateError):
    pass
