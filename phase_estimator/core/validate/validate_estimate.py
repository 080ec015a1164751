from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, cast

from phase_estimator.core.errors import EstimateValidationError
from phase_estimator.core.features.ledger import FeatureLedger
from phase_estimator.core.model import GRADES, Feature, Grade, PhaseDefinition, Supplier
from phase_estimator.core.phases.definitions import DEFAULT_PHASE_DEFINITIONS
from phase_estimator.core.phases.store import PhaseStore, validate_phases
from phase_estimator.core.rates.rate_catalog import RateCatalog, build_rate_catalog


@dataclass(frozen=True)
class EstimateSnapshot:
    schema_version: str
    ledger: FeatureLedger
    rate_catalog: RateCatalog
    store: PhaseStore


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_finite_number(v: Any) -> bool:
    # YAML .nan and .inf load as floats.
    if not _is_number(v):
        return False
    try:
        return math.isfinite(v)
    except OverflowError:
        return False


def validate_estimate(
    doc: dict[str, Any],
    definitions: Iterable[PhaseDefinition] = DEFAULT_PHASE_DEFINITIONS,
) -> tuple[Optional[EstimateSnapshot], list[EstimateValidationError]]:
    """Validate an estimate document and build the calculation snapshot.

    Returns (snapshot, errors). Snapshot is None when errors exist.
    Supplier references that do not resolve are not errors here; lint reports them.
    """

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[EstimateValidationError] = []
    definitions = tuple(definitions)
    phase_ids = {d.id for d in definitions}

    def err(code: str, message: str, path: str) -> None:
        errors.append(EstimateValidationError(code=code, message=message, file=file, path=path))

    schema_version = doc.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        err("E_REQUIRED_FIELD", "schema_version is required and must be a non-empty string", "schema_version")

    # Suppliers and internal resources share one id space.
    seen_supplier_ids: set[str] = set()
    external: list[Supplier] = []
    internal: list[Supplier] = []
    for key, bucket, is_internal in (
        ("suppliers", external, False),
        ("internalResources", internal, True),
    ):
        raw_list = doc.get(key)
        if not isinstance(raw_list, list):
            err("E_INVALID_TYPE", f"{key} must be an array", key)
            continue
        for i, raw in enumerate(raw_list):
            s_path = f"{key}[{i}]"
            if not isinstance(raw, dict):
                err("E_INVALID_TYPE", "supplier must be an object", s_path)
                continue
            sid = raw.get("id")
            if not isinstance(sid, str) or not sid.strip():
                err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{s_path}.id")
                continue
            if sid in seen_supplier_ids:
                err("E_DUPLICATE_ID", f"duplicate supplier id: {sid}", f"{s_path}.id")
                continue
            seen_supplier_ids.add(sid)

            ok = True
            for rate_key in ("realRate", "officialRate"):
                rate = raw.get(rate_key)
                if rate is not None and not _is_finite_number(rate):
                    err("E_INVALID_TYPE", f"{rate_key} must be a finite number", f"{s_path}.{rate_key}")
                    ok = False
            for str_key in ("name", "role", "department"):
                value = raw.get(str_key)
                if value is not None and not isinstance(value, str):
                    err("E_INVALID_TYPE", f"{str_key} must be a string", f"{s_path}.{str_key}")
                    ok = False
            if not ok:
                continue

            bucket.append(
                Supplier(
                    id=sid,
                    name=raw.get("name") or sid,
                    real_rate=raw.get("realRate"),
                    official_rate=raw.get("officialRate"),
                    role=raw.get("role"),
                    department=raw.get("department"),
                    internal=is_internal,
                )
            )

    features: list[Feature] = []
    raw_features = doc.get("features")
    if not isinstance(raw_features, list):
        err("E_REQUIRED_FIELD", "features is required and must be an array", "features")
    else:
        seen_feature_ids: set[str] = set()
        for i, raw in enumerate(raw_features):
            f_path = f"features[{i}]"
            if not isinstance(raw, dict):
                err("E_INVALID_TYPE", "feature must be an object", f_path)
                continue
            fid = raw.get("id")
            if not isinstance(fid, str) or not fid.strip():
                err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{f_path}.id")
                continue
            if fid in seen_feature_ids:
                err("E_DUPLICATE_ID", f"duplicate feature id: {fid}", f"{f_path}.id")
                continue
            seen_feature_ids.add(fid)

            supplier = raw.get("supplier")
            if supplier is not None and not isinstance(supplier, str):
                err("E_INVALID_TYPE", "supplier must be a string", f"{f_path}.supplier")
                continue

            man_days = raw.get("manDays")
            if not _is_number(man_days):
                err("E_REQUIRED_FIELD", "manDays is required and must be a number", f"{f_path}.manDays")
                continue
            if not _is_finite_number(man_days):
                err("E_INVALID_TYPE", "manDays must be a finite number", f"{f_path}.manDays")
                continue
            if man_days < 0:
                err("E_NEGATIVE_MAN_DAYS", "manDays cannot be negative", f"{f_path}.manDays")
                continue

            description = raw.get("description")
            features.append(
                Feature(
                    id=fid,
                    supplier_id=supplier or None,
                    man_days=float(man_days),
                    description=description if isinstance(description, str) else None,
                )
            )

    selected: dict[Grade, Optional[str]] = {}
    project_phases: dict[str, Any] = {}
    raw_phases = doc.get("phases")
    if raw_phases is not None and not isinstance(raw_phases, dict):
        err("E_INVALID_TYPE", "phases must be an object", "phases")
    elif isinstance(raw_phases, dict):
        for key, value in raw_phases.items():
            if key == "selectedSuppliers":
                selected = _validate_selection(value, err)
                continue
            p_path = f"phases.{key}"
            if key not in phase_ids:
                err("E_UNKNOWN_PHASE", f"unknown phase id: {key}", p_path)
                continue
            if not isinstance(value, dict):
                err("E_INVALID_TYPE", "phase must be an object", p_path)
                continue
            man_days = value.get("manDays")
            if man_days is not None and not _is_finite_number(man_days):
                err("E_INVALID_TYPE", "manDays must be a finite number", f"{p_path}.manDays")
                continue
            effort = value.get("effort")
            if effort is not None:
                if not isinstance(effort, dict):
                    err("E_INVALID_TYPE", "effort must be an object of grade -> percent", f"{p_path}.effort")
                    continue
                bad = False
                for grade, pct in effort.items():
                    if grade not in GRADES:
                        err("E_UNKNOWN_GRADE", f"grade must be one of {list(GRADES)}", f"{p_path}.effort.{grade}")
                        bad = True
                    elif not _is_finite_number(pct):
                        err("E_INVALID_TYPE", "effort percent must be a finite number", f"{p_path}.effort.{grade}")
                        bad = True
                if bad:
                    continue
            project_phases[key] = value

    if errors:
        return None, _sorted(errors)

    ledger = FeatureLedger(features)
    store = PhaseStore.from_project(project_phases, ledger, definitions)
    errors.extend(validate_phases(store.snapshot(), file=file))
    if errors:
        return None, _sorted(errors)

    snapshot = EstimateSnapshot(
        schema_version=cast(str, schema_version),
        ledger=ledger,
        rate_catalog=build_rate_catalog(external, internal, selected),
        store=store,
    )
    return snapshot, []


def _validate_selection(
    value: Any, err: Callable[[str, str, str], None]
) -> dict[Grade, Optional[str]]:
    path = "phases.selectedSuppliers"
    if value is None:
        return {}
    if not isinstance(value, dict):
        err("E_INVALID_TYPE", "selectedSuppliers must be an object of grade -> supplier id", path)
        return {}
    out: dict[Grade, Optional[str]] = {}
    for grade, sid in value.items():
        if grade not in GRADES:
            err("E_UNKNOWN_GRADE", f"grade must be one of {list(GRADES)}", f"{path}.{grade}")
            continue
        if sid is not None and not isinstance(sid, str):
            err("E_INVALID_TYPE", "selected supplier must be a string or null", f"{path}.{grade}")
            continue
        out[cast(Grade, grade)] = sid or None
    return out


def _sorted(errors: Iterable[EstimateValidationError]) -> list[EstimateValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
