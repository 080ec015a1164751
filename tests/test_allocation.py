from phase_estimator.core.engine.allocation import (
    compute_man_days_by_grade,
    compute_phase_allocation,
    compute_phase_total_cost,
    compute_project_totals,
)
from phase_estimator.core.engine.development import round_half_up
from phase_estimator.core.model import GRADES, Effort, Feature, Phase, Supplier
from phase_estimator.core.rates.rate_catalog import build_rate_catalog


SUPPLIERS = [
    Supplier(id="S1", name="Acme", real_rate=400),
    Supplier(id="S2", name="Beta", official_rate=500),
    Supplier(id="S-G1", name="Gamma", real_rate=450),
    Supplier(id="S-G2", name="Epsilon", real_rate=380),
    Supplier(id="S-TA", name="Zeta", real_rate=420),
    Supplier(id="S-PM", name="Delta", real_rate=500),
]
SELECTED = {"G1": "S-G1", "G2": "S-G2", "TA": "S-TA", "PM": "S-PM"}
FEATURES = [Feature("F1", "S1", 12), Feature("F2", "S2", 8)]


def _catalog():
    return build_rate_catalog(SUPPLIERS, selected=SELECTED)


def _development(effort: Effort) -> Phase:
    return Phase(
        id="development",
        name="Development",
        man_days=sum(f.man_days for f in FEATURES),
        effort=effort,
        calculated=True,
    )


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.4999) == 2
    assert round_half_up(0) == 0


def test_round_half_up_non_finite_is_zero():
    assert round_half_up(float("nan")) == 0
    assert round_half_up(float("inf")) == 0
    assert round_half_up(float("-inf")) == 0


def test_non_development_scenario():
    phase = Phase(id="uatTests", name="UAT Tests", man_days=10, effort=Effort(g1=50))
    a = compute_phase_allocation(phase, _catalog())
    assert a.man_days_by_grade["G1"] == 5
    assert a.cost_by_grade["G1"] == 2250


def test_non_development_cost_formula_holds_for_every_grade():
    catalog = _catalog()
    phase = Phase(
        id="integrationTests",
        name="Integration Tests",
        man_days=7.3,
        effort=Effort(g1=100, g2=50, ta=50, pm=75),
    )
    a = compute_phase_allocation(phase, catalog)
    for g in GRADES:
        expected = round_half_up(phase.man_days * phase.effort.get(g) / 100 * catalog.resolve_rate(g))
        assert a.cost_by_grade[g] == expected


def test_effort_is_not_normalized():
    over = compute_man_days_by_grade(10, Effort(g1=50, g2=50, ta=30, pm=20))
    assert sum(over.values()) == 15
    under = compute_man_days_by_grade(10, Effort(g1=10, g2=10, ta=10, pm=10))
    assert sum(under.values()) == 4
    assert under["G1"] == 1


def test_development_g2_uses_feature_suppliers():
    a = compute_phase_allocation(_development(Effort(g2=100, ta=40)), _catalog(), FEATURES)
    assert a.cost_by_grade["G2"] == 8800
    assert a.man_days_by_grade["G2"] == 20
    # Other grades keep the grade rate.
    assert a.cost_by_grade["TA"] == round_half_up(20 * 0.4 * 420)


def test_stale_development_man_days_are_derived_from_ledger():
    stale = Phase(id="development", name="Development", man_days=5, effort=Effort(g2=100, ta=50), calculated=True)
    a = compute_phase_allocation(stale, _catalog(), FEATURES)
    assert a.man_days_by_grade["G2"] == 20
    assert a.man_days_by_grade["TA"] == 10
    assert a.cost_by_grade["G2"] == 8800
    assert a.cost_by_grade["TA"] == 4200

    totals = compute_project_totals([stale], _catalog(), FEATURES)
    assert totals.man_days == 20
    assert totals.man_days_by_grade["G2"] == 20


def test_development_without_ledger_uses_phase_man_days():
    stale = Phase(id="development", name="Development", man_days=5, effort=Effort(g2=100), calculated=True)
    a = compute_phase_allocation(stale, _catalog())
    assert a.man_days_by_grade["G2"] == 5
    assert a.cost_by_grade["G2"] == 0


def test_selected_g2_supplier_only_affects_other_phases():
    catalog = _catalog()
    other = catalog.with_selection("G2", "S1")
    dev = _development(Effort(g2=100))
    tech = Phase(id="technicalAnalysis", name="Technical Analysis", man_days=10, effort=Effort(g2=100))

    assert (
        compute_phase_allocation(dev, catalog, FEATURES).cost_by_grade["G2"]
        == compute_phase_allocation(dev, other, FEATURES).cost_by_grade["G2"]
    )
    assert compute_phase_allocation(tech, catalog).cost_by_grade["G2"] == 3800
    assert compute_phase_allocation(tech, other).cost_by_grade["G2"] == 4000


def test_unresolved_rates_cost_zero():
    catalog = build_rate_catalog(SUPPLIERS, selected={"G1": "GHOST"})
    phase = Phase(id="vapt", name="VAPT", man_days=10, effort=Effort(g1=30, g2=30, ta=30, pm=20))
    a = compute_phase_allocation(phase, catalog)
    assert a.cost_by_grade == {"G1": 0, "G2": 0, "TA": 0, "PM": 0}
    assert a.man_days_by_grade["G1"] == 3


def test_out_of_domain_values_are_computed_literally():
    phase = Phase(id="vapt", name="VAPT", man_days=-10, effort=Effort(g1=150))
    a = compute_phase_allocation(phase, _catalog())
    assert a.man_days_by_grade["G1"] == -15
    assert a.cost_by_grade["G1"] == -6750


def test_allocation_is_idempotent():
    catalog = _catalog()
    dev = _development(Effort(g2=100, ta=40, pm=20))
    first = compute_phase_allocation(dev, catalog, FEATURES)
    second = compute_phase_allocation(dev, catalog, FEATURES)
    assert first == second


def test_phase_total_cost():
    phase = Phase(id="uatTests", name="UAT Tests", man_days=10, effort=Effort(g1=50, pm=10))
    assert compute_phase_total_cost(phase, _catalog()) == 2250 + 500


def test_project_totals_sum_phases():
    catalog = _catalog()
    phases = [
        Phase(id="technicalAnalysis", name="Technical Analysis", man_days=10, effort=Effort(g2=100)),
        _development(Effort(g2=100, pm=10)),
        Phase(id="uatTests", name="UAT Tests", man_days=10, effort=Effort(g1=50, g2=25)),
    ]
    totals = compute_project_totals(phases, catalog, FEATURES)

    g2_sum = sum(compute_phase_allocation(p, catalog, FEATURES).cost_by_grade["G2"] for p in phases)
    assert totals.cost_by_grade["G2"] == g2_sum == 3800 + 8800 + 950
    assert totals.man_days == 40
    assert totals.man_days_by_grade["G2"] == 10 + 20 + 2.5
    assert totals.total_cost == sum(totals.cost_by_grade.values())
    assert totals.total_cost == sum(a.total_cost for a in totals.allocations)
    assert len(totals.allocations) == 3
