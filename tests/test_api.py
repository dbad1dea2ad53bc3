from __future__ import annotations

from datetime import date

import pytest

from surveyest import api
from surveyest.assignment import aggregate, select_works
from surveyest.calculators import InspectionWork
from surveyest.errors import RuleEvaluationError, TableNotFoundError, ValidationError
from surveyest.models import PriceReference, PricingConditions, WorkItem
from surveyest.norms import NormRegistry
from surveyest.rules.engine import EngineOptions


def test_generate_assignment_from_camel_case_mapping() -> None:
    assignment = api.generate_assignment(
        {"projectName": "Цех", "objectType": "areal", "areaHa": 1, "geotechnicalCategory": "I", "responsibilityLevel": "III"}
    )
    assert assignment.project_name == "Цех"
    assert assignment.rule_set_version == "2025"
    assert assignment.get("drilling-grid").quantity == 2
    assert assignment.statistics.total == len(assignment.works)
    assert ("block-05-grid-cati-respiii", "variant-mandatory-sp-rk-105") in {
        (entry.block_id, entry.variant_id) for entry in assignment.applied_blocks
    }


def test_generate_assignment_is_deterministic(areal_project) -> None:
    project = areal_project(seismicity=8, groundwater_depth=4.0)
    assert api.generate_assignment(project) == api.generate_assignment(project)


def test_generate_assignment_validates_input() -> None:
    with pytest.raises(ValidationError) as excinfo:
        api.generate_assignment({"objectType": "areal"})
    assert excinfo.value.field == "project_name"


def test_generate_assignment_rejects_unknown_rule_set(areal_project) -> None:
    with pytest.raises(ValidationError):
        api.generate_assignment(areal_project(), rule_set_version="1999")


def test_generate_assignment_passes_engine_options(areal_project) -> None:
    project = areal_project(geophysics_methods=["ert"])
    default = api.generate_assignment(project)
    without_reference = api.generate_assignment(project, options=EngineOptions(include_reference_variants=False))
    assert len(without_reference.recommendations) == len(default.recommendations) - 1


def test_generate_assignment_wraps_block_failures(areal_project, monkeypatch) -> None:
    from surveyest.rules import catalog

    def broken(project, variant):
        raise RuntimeError("generator failed")

    block = catalog.BLOCKS_2025[0]
    variant = block.variants[0]
    patched_block = type(block)(
        id=block.id,
        section=block.section,
        title=block.title,
        variants=(type(variant)(id=variant.id, priority=variant.priority, normative=variant.normative, generate_works=broken),),
    )
    monkeypatch.setitem(catalog.RULE_SETS, "broken", (patched_block,))
    with pytest.raises(RuleEvaluationError) as excinfo:
        api.generate_assignment(areal_project(), rule_set_version="broken")
    assert excinfo.value.block_id == block.id


def test_calculate_estimate_dispatches_on_descriptor(registry, fixed_clock) -> None:
    work = InspectionWork("I", "II", "до 4.5м", volume=5000, conditions=frozenset({"winter_conditions"}), seismicity=8)
    result = api.calculate_estimate(work, registry=registry, clock=fixed_clock)
    assert result.total_cost == 1588518.75
    assert result == api.calculate_estimate(work, registry=registry, clock=fixed_clock)


def test_calculate_estimate_with_unknown_version(registry) -> None:
    with pytest.raises(TableNotFoundError):
        api.calculate_estimate(InspectionWork("I", "I", "до 4.5м", volume=5000), version="2019", registry=registry)


def test_calculate_estimate_rejects_unknown_descriptor() -> None:
    with pytest.raises(ValidationError):
        api.calculate_estimate(object())


def test_price_assignment_prices_selected_referenced_works(areal_project, registry, fixed_clock) -> None:
    assignment = api.generate_assignment(areal_project())
    result = api.price_assignment(assignment, registry=registry, clock=fixed_clock)
    assert [item.code for item in result.items] == ["1602-0202-02", "1602-0701-01", "1602-0701-02", "1602-0701-04"]
    assert [item.cost for item in result.items] == [81250.00, 18750.00, 28140.00, 56250.00]
    assert result.total_cost == 184390.00
    assert result.metadata.module == "assignment"
    assert result.metadata.section == "2"


def test_price_assignment_follows_selection(areal_project, registry) -> None:
    assignment = api.generate_assignment(areal_project())
    deselected = select_works(assignment, ["lab-grain-size"], selected=False)
    result = api.price_assignment(deselected, registry=registry)
    assert result.total_cost == 184390.00 - 56250.00


def test_price_assignment_with_inspection(areal_project, registry) -> None:
    project = areal_project(
        construction_phase="operation",
        building_volume=5000,
        building_category="I",
        height_category="до 4.5м",
        structural_deformations=True,
    )
    result = api.price_assignment(api.generate_assignment(project), registry=registry)
    inspection = next(item for item in result.items if item.code.startswith("1604"))
    assert inspection.cost == 19551 * 50
    assert result.metadata.section == "2,4"


def test_price_assignment_reports_reference_factors(registry) -> None:
    work = WorkItem(
        "cpt-winter",
        "Статическое зондирование",
        60,
        "м",
        "mandatory",
        "geological",
        price_ref=PriceReference("2", "1602-0401", {"soil_category": "III"}, factors={"winter": 1.25}),
    )
    result = api.price_assignment(aggregate([work]), registry=registry)
    assert result.items[0].coefficient == 1.25
    assert result.coefficients == {"base": 1.0, "winter": 1.25}


def test_conflicting_factor_values_are_listed_per_work(registry) -> None:
    def cpt(work_id: str, urgency: float) -> WorkItem:
        ref = PriceReference("2", "1602-0401", {"soil_category": "III"}, factors={"urgency": urgency})
        return WorkItem(work_id, "Статическое зондирование", 10, "м", "mandatory", "geological", price_ref=ref)

    result = api.price_assignment(aggregate([cpt("a", 1.3), cpt("b", 1.5), cpt("c", 1.3)]), registry=registry)
    assert result.coefficients == {"base": 1.0, "urgency": 1.3, "urgency[b]": 1.5}


def test_seismic_winter_project_costs_more(areal_project, registry) -> None:
    calm = api.price_assignment(api.generate_assignment(areal_project()), registry=registry)
    assignment = api.generate_assignment(areal_project(seismicity=9, season="winter"))
    assert assignment.conditions == PricingConditions(season="winter", seismicity=9)
    harsh = api.price_assignment(assignment, registry=registry)
    assert calm.total_cost == 184390.00
    assert calm.coefficients == {"base": 1.0}
    assert {item.coefficient for item in harsh.items} == {1.82}
    assert harsh.coefficients == {"base": 1.0, "season": 1.3, "seismicity": 1.4}
    assert harsh.total_cost == 335589.80


def test_price_assignment_conditions_argument_overrides_assignment(areal_project, registry) -> None:
    assignment = api.generate_assignment(areal_project(seismicity=9, season="winter"))
    result = api.price_assignment(assignment, registry=registry, conditions=PricingConditions(season="winter"))
    assert result.coefficients == {"base": 1.0, "season": 1.3}
    assert result.total_cost == 239707.00


def test_inspection_lines_use_inspection_conditions(areal_project, registry) -> None:
    project = areal_project(
        construction_phase="operation",
        building_volume=5000,
        building_category="I",
        height_category="до 4.5м",
        structural_deformations=True,
        season="winter",
    )
    result = api.price_assignment(api.generate_assignment(project), registry=registry)
    inspection = next(item for item in result.items if item.code.startswith("1604"))
    assert inspection.coefficient == 1.25
    assert result.coefficients["winter_conditions"] == 1.25
    assert result.coefficients["season"] == 1.3


def test_registry_pass_throughs() -> None:
    assert api.is_table_available("4", "1604-0301-01")
    assert not api.is_table_available("4", "nope")
    assert api.get_table("2", "1602-0201").rows[0].price_per_unit == 625
    assert api.get_coefficients("2").band("season", "winter") == 1.3


def test_default_registry_is_shared() -> None:
    assert api.default_registry() is api.default_registry()
    assert isinstance(api.default_registry(), NormRegistry)


def test_versions_do_not_interfere() -> None:
    old = NormRegistry(today=date(2025, 6, 1))
    pinned = NormRegistry(version_override="2019")
    work = InspectionWork("I", "I", "до 4.5м", volume=5000)
    assert api.calculate_estimate(work, registry=old).total_cost == 3893 * 50
    with pytest.raises(TableNotFoundError):
        api.calculate_estimate(work, registry=pinned)
