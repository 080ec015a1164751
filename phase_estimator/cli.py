from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

import typer

from phase_estimator.core.engine.allocation import compute_project_totals
from phase_estimator.core.engine.vendor_costs import compute_cost_kpis, compute_vendor_costs
from phase_estimator.core.errors import EstimateError, EstimateLoadError, EstimateValidationError
from phase_estimator.core.io.load_estimate import load_estimate
from phase_estimator.core.lint.lint_estimate import has_errors, lint_estimate
from phase_estimator.core.model import GRADES, PhaseDefinition, ProjectTotals
from phase_estimator.core.phases.definitions import PhaseConfigError, load_and_merge
from phase_estimator.core.validate.validate_estimate import EstimateSnapshot, validate_estimate

app = typer.Typer(add_completion=False, no_args_is_help=True)

logger = logging.getLogger(__name__)

FORMATS = ("text", "json")


@app.callback()
def _callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: $ESTIMATOR_LOG_LEVEL or WARNING)",
    ),
) -> None:
    """Phase estimator CLI."""
    level_name = (log_level or os.getenv("ESTIMATOR_LOG_LEVEL") or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to an estimate file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate an estimate file."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, exit_code: int, errors: list[EstimateError], summary: dict | None) -> None:
        payload = {
            "tool": "estimator",
            "command": "validate",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        doc = load_estimate(path)
    except EstimateLoadError as e:
        if format == "json":
            _emit_json(False, 1, [e], None)
        _print_errors([e])
        raise typer.Exit(code=1)

    snapshot, errors = validate_estimate(doc, _load_definitions(None))
    if errors or snapshot is None:
        if format == "json":
            _emit_json(False, 2, list(errors), None)
        _print_errors(list(errors))
        raise typer.Exit(code=2)

    summary = {
        "schema_version": snapshot.schema_version,
        "feature_count": len(snapshot.ledger),
        "supplier_count": len(snapshot.rate_catalog.suppliers),
        "development_man_days": snapshot.ledger.total_man_days(),
    }
    if format == "json":
        _emit_json(True, 0, [], summary)

    typer.echo(
        f"OK: {summary['feature_count']} features, {summary['supplier_count']} suppliers"
        f"\nDevelopment man days: {summary['development_man_days']:.1f}"
    )


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to an estimate file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    strict: bool = typer.Option(False, "--strict", help="Fail on warnings too"),
) -> None:
    """Lint an estimate file (advisory rules beyond schema validation)."""
    _check_format(format, "E_LINT_UNKNOWN_FORMAT")
    doc, snapshot = _load_snapshot(path, None)
    findings = lint_estimate(doc, snapshot)
    failed = has_errors(findings) or (strict and bool(findings))
    exit_code = 2 if failed else 0

    if format == "json":
        payload = {
            "tool": "estimator",
            "command": "lint",
            "ok": not failed,
            "finding_count": len(findings),
            "findings": [_to_item(f, source="lint") for f in findings],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    _print_findings(findings)
    if failed:
        raise typer.Exit(code=exit_code)
    typer.echo("OK: lint passed" if not findings else f"OK: lint passed with {len(findings)} warning(s)")


@app.command("phases")
def phases(
    phases_file: Optional[str] = typer.Option(
        None,
        "--phases-file",
        help="Optional YAML file overriding phase names/descriptions/default effort",
    ),
) -> None:
    """List phase definitions and their default effort split."""
    definitions = _load_definitions(phases_file)
    typer.echo("Phases:")
    for d in definitions:
        effort = ", ".join(f"{g}={d.default_effort.get(g):g}%" for g in GRADES)
        suffix = " (calculated)" if d.calculated else ""
        typer.echo(f"- {d.id}: {d.name} [{d.type}] {effort}{suffix}")


@app.command("allocate")
def allocate(
    path: str = typer.Argument(..., help="Path to an estimate file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    phases_file: Optional[str] = typer.Option(
        None,
        "--phases-file",
        help="Optional YAML file overriding phase names/descriptions/default effort",
    ),
) -> None:
    """Compute man days and costs per grade for every phase, with project totals."""
    _check_format(format, "E_ALLOCATE_UNKNOWN_FORMAT")
    definitions = _load_definitions(phases_file)
    _, snapshot = _load_snapshot(path, definitions)

    phase_list = snapshot.store.snapshot()
    totals = compute_project_totals(phase_list, snapshot.rate_catalog, snapshot.ledger)

    if format == "json":
        typer.echo(json.dumps(_allocation_payload(snapshot, totals), indent=2, sort_keys=True))
        return

    header = f"{'Phase':<24}{'MDs':>9}" + "".join(f"{g + ' MDs':>10}" for g in GRADES)
    header += "".join(f"{g + ' cost':>12}" for g in GRADES)
    typer.echo(header)
    for phase, a in zip(phase_list, totals.allocations):
        row = f"{phase.name:<24}{phase.man_days:>9.1f}"
        row += "".join(f"{a.man_days_by_grade[g]:>10.1f}" for g in GRADES)
        row += "".join(f"{a.cost_by_grade[g]:>12,}" for g in GRADES)
        typer.echo(row)
    row = f"{'TOTALS':<24}{totals.man_days:>9.1f}"
    row += "".join(f"{totals.man_days_by_grade[g]:>10.1f}" for g in GRADES)
    row += "".join(f"{totals.cost_by_grade[g]:>12,}" for g in GRADES)
    typer.echo(row)
    typer.echo(f"Total project cost: {totals.total_cost:,}")


@app.command("vendors")
def vendors(
    path: str = typer.Argument(..., help="Path to an estimate file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Break the project cost down by supplier and role."""
    _check_format(format, "E_VENDORS_UNKNOWN_FORMAT")
    _, snapshot = _load_snapshot(path, None)

    rows = compute_vendor_costs(snapshot.store.snapshot(), snapshot.rate_catalog, snapshot.ledger)
    kpis = compute_cost_kpis(rows)

    if format == "json":
        payload = {
            "tool": "estimator",
            "command": "vendors",
            "vendors": [
                {
                    "vendor_id": r.vendor_id,
                    "vendor": r.vendor,
                    "role": r.role,
                    "department": r.department,
                    "internal": r.internal,
                    "man_days": r.man_days,
                    "rate": r.rate,
                    "official_rate": r.official_rate,
                    "cost": r.cost,
                    "final_man_days": r.final_man_days,
                }
                for r in rows
            ],
            "kpis": {
                name: {
                    "internal": group.internal,
                    "external": group.external,
                    "total": group.total,
                    "internal_percentage": group.internal_percentage,
                    "external_percentage": group.external_percentage,
                }
                for name, group in (("gto", kpis.gto), ("gds", kpis.gds))
            },
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    if not rows:
        typer.echo("No vendor costs (no resolvable suppliers selected or assigned)")
        return
    for r in rows:
        kind = "internal" if r.internal else "external"
        typer.echo(
            f"- {r.vendor} [{r.role}, {r.department}, {kind}]: "
            f"{r.man_days:.1f} MDs x {r.rate:g} = {r.cost:,.0f} (final MDs {r.final_man_days})"
        )
    for name, group in (("GTO", kpis.gto), ("GDS", kpis.gds)):
        typer.echo(
            f"{name}: internal {group.internal:,.0f} ({group.internal_percentage:.1f}%), "
            f"external {group.external:,.0f} ({group.external_percentage:.1f}%)"
        )


def _allocation_payload(snapshot: EstimateSnapshot, totals: ProjectTotals) -> dict[str, Any]:
    phase_items = []
    for phase, a in zip(snapshot.store.snapshot(), totals.allocations):
        phase_items.append(
            {
                "id": phase.id,
                "name": phase.name,
                "calculated": phase.calculated,
                "man_days": phase.man_days,
                "effort": phase.effort.as_dict(),
                "man_days_by_grade": a.man_days_by_grade,
                "cost_by_grade": a.cost_by_grade,
                "total_cost": a.total_cost,
            }
        )
    return {
        "tool": "estimator",
        "command": "allocate",
        "schema_version": snapshot.schema_version,
        "phases": phase_items,
        "totals": {
            "man_days": totals.man_days,
            "man_days_by_grade": totals.man_days_by_grade,
            "cost_by_grade": totals.cost_by_grade,
            "total_cost": totals.total_cost,
        },
    }


def _load_definitions(phases_file: Optional[str]) -> tuple[PhaseDefinition, ...]:
    phases_file = phases_file or os.getenv("ESTIMATOR_PHASES_FILE") or None
    try:
        return load_and_merge(phases_file)
    except FileNotFoundError:
        _print_errors(
            [
                EstimateLoadError(
                    code="E_PHASES_FILE_NOT_FOUND",
                    message=f"phases file not found: {phases_file}",
                    file=None,
                    path="phases_file",
                )
            ]
        )
        raise typer.Exit(code=1)
    except PhaseConfigError as e:
        _print_errors(
            [
                EstimateValidationError(
                    code="E_PHASES_FILE_INVALID",
                    message=str(e),
                    file=None,
                    path="phases_file",
                )
            ]
        )
        raise typer.Exit(code=2)


def _load_snapshot(
    path: str, definitions: Optional[tuple[PhaseDefinition, ...]]
) -> tuple[dict[str, Any], EstimateSnapshot]:
    try:
        doc = load_estimate(path)
    except EstimateLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    if definitions is None:
        definitions = _load_definitions(None)
    snapshot, errors = validate_estimate(doc, definitions)
    if errors or snapshot is None:
        _print_errors(list(errors))
        raise typer.Exit(code=2)
    logger.debug("loaded %s: %d features", path, len(snapshot.ledger))
    return doc, snapshot


def _check_format(format: str, code: str) -> None:
    if format not in FORMATS:
        err = EstimateValidationError(
            code=code,
            message=f"unknown format: {format} (choose one of: {', '.join(FORMATS)})",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _to_item(e: EstimateError, source: Optional[str] = None) -> dict:
    if source is None:
        source = "load" if isinstance(e, EstimateLoadError) else "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": e.severity,
        "source": source,
    }


def _print_errors(errors: list[EstimateError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def _print_findings(findings: list[EstimateError]) -> None:
    for f in findings:
        typer.echo(f"{f.severity.upper()}: {f}", err=True)


def main() -> None:
    app(prog_name="estimator")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
