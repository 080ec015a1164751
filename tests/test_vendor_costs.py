import pytest

from phase_estimator.core.engine.vendor_costs import compute_cost_kpis, compute_vendor_costs
from phase_estimator.core.io.load_estimate import load_estimate
from phase_estimator.core.model import Effort, Feature, Phase, Supplier
from phase_estimator.core.rates.rate_catalog import build_rate_catalog
from phase_estimator.core.validate.validate_estimate import validate_estimate


def _basic():
    snapshot, errors = validate_estimate(load_estimate("examples/basic-estimate.yaml"))
    assert errors == []
    assert snapshot is not None
    return snapshot


def test_vendor_rows_for_basic_estimate():
    s = _basic()
    rows = compute_vendor_costs(s.store.snapshot(), s.rate_catalog, s.ledger)
    by_vendor = {(r.vendor, r.role): r for r in rows}

    assert [r.vendor for r in rows] == [
        "Acme Consulting",
        "Beta Software",
        "Delta PMO",
        "Gamma Analysts",
        "Internal Developer",
        "Internal Tech Analyst",
    ]

    acme = by_vendor[("Acme Consulting", "G2")]
    assert acme.man_days == 12
    assert acme.cost == 4800
    assert acme.rate == 400
    assert acme.official_rate == 420
    assert acme.final_man_days == 11
    assert acme.internal is False

    # Development G2 is charged per feature, not to the selected G2 supplier.
    dev = by_vendor[("Internal Developer", "G2")]
    assert dev.man_days == 6
    assert dev.cost == 3300
    assert dev.internal is True

    ta = by_vendor[("Internal Tech Analyst", "TA")]
    assert ta.man_days == pytest.approx(5.6)
    assert ta.final_man_days == 6


def test_rows_merge_for_same_vendor_and_role():
    catalog = build_rate_catalog(
        [Supplier(id="S1", name="Acme", real_rate=400, official_rate=400, department="IT")],
        selected={"G2": "S1"},
    )
    phases = [
        Phase(id="technicalAnalysis", name="Technical Analysis", man_days=10, effort=Effort(g2=50)),
        Phase(id="development", name="Development", man_days=4, effort=Effort(g2=100), calculated=True),
    ]
    rows = compute_vendor_costs(phases, catalog, [Feature("F1", "S1", 4)])
    assert len(rows) == 1
    assert rows[0].man_days == 9
    assert rows[0].cost == 3600
    assert rows[0].final_man_days == 9


def test_stale_development_man_days_follow_ledger():
    catalog = build_rate_catalog(
        [Supplier(id="S1", name="Acme", real_rate=400, official_rate=400), Supplier(id="T", name="Tau", real_rate=500)],
        selected={"TA": "T"},
    )
    stale = Phase(id="development", name="Development", man_days=1, effort=Effort(g2=100, ta=50), calculated=True)
    rows = {r.role: r for r in compute_vendor_costs([stale], catalog, [Feature("F1", "S1", 6)])}
    assert rows["G2"].man_days == 6
    assert rows["TA"].man_days == 3


def test_no_official_rate_means_no_final_man_days():
    catalog = build_rate_catalog([Supplier(id="S1", name="Acme", real_rate=400)], selected={"G1": "S1"})
    phases = [Phase(id="vapt", name="VAPT", man_days=10, effort=Effort(g1=10))]
    rows = compute_vendor_costs(phases, catalog, [])
    assert rows[0].final_man_days == 0
    assert rows[0].department == "Unknown"


def test_kpis_split_internal_and_external():
    s = _basic()
    kpis = compute_cost_kpis(compute_vendor_costs(s.store.snapshot(), s.rate_catalog, s.ledger))
    assert kpis.gto.internal == 6 * 550 + 6 * 580
    assert kpis.gto.external == 11 * 420 + 8 * 500
    assert kpis.gds.internal == 0
    assert kpis.gds.external == 5 * 450 + 4 * 500
    assert kpis.gds.external_percentage == 100
    assert kpis.gto.internal_percentage == pytest.approx(6780 / 15400 * 100)


def test_kpis_empty():
    kpis = compute_cost_kpis([])
    assert kpis.gto.total == 0
    assert kpis.gto.internal_percentage == 0
