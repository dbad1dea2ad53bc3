from __future__ import annotations

import logging

import pytest

from surveyest.calculators import (
    DeformationMonitoringWork,
    DepthSoundingWork,
    DrillingWork,
    FieldTestWork,
    GeodeticConditions,
    HydroConditions,
    InspectionWork,
    LabTest,
    LaboratoryWork,
    LayoutWork,
    MeteoObservationWork,
    SiteConditions,
    TableWork,
    TopographicSurveyWork,
    WaterSample,
    WaterSamplingWork,
    calculate_deformation_monitoring,
    calculate_depth_sounding,
    calculate_drilling,
    calculate_field_test,
    calculate_inspection,
    calculate_laboratory,
    calculate_layout,
    calculate_meteo_observation,
    calculate_table_work,
    calculate_topographic_survey,
    calculate_water_sampling,
    condition_factors,
    inspection_factors,
)
from surveyest.errors import PriceNotFoundError, ValidationError
from surveyest.models import PricingConditions


def test_small_volume_factor_applies_below_threshold(handle, fixed_clock) -> None:
    work = InspectionWork("I", "I", "до 4.5м", volume=500)
    result = calculate_inspection(work, handle, fixed_clock)
    assert result.items[0].quantity == 5
    assert result.coefficients == {"base": 1.0, "small_volume": 2.8}
    assert result.total_cost == 54502.00


def test_large_volume_has_no_small_volume_factor(handle, fixed_clock) -> None:
    work = InspectionWork("I", "I", "до 4.5м", volume=5000)
    result = calculate_inspection(work, handle, fixed_clock)
    assert "small_volume" not in result.coefficients
    assert result.items[0].coefficient == 1.0
    assert result.total_cost == 3893 * 50


def test_winter_and_seismicity_combine(handle, fixed_clock) -> None:
    work = InspectionWork(
        "I",
        "II",
        "до 4.5м",
        volume=5000,
        conditions=frozenset({"winter_conditions"}),
        seismicity=8,
    )
    result = calculate_inspection(work, handle, fixed_clock)
    assert result.base_price == 19551
    assert result.coefficients == {"base": 1.0, "winter_conditions": 1.25, "seismicity": 1.3}
    assert result.items[0].coefficient == 1.625
    assert result.total_cost == 1588518.75
    assert result.metadata.section == "4"
    assert result.metadata.norm_version == "2025"
    assert result.metadata.module == "inspection"
    assert result.metadata.calculated_at == "2025-03-01T12:00:00+00:00"


def test_multi_storey_uses_multi_storey_table(handle) -> None:
    work = InspectionWork("II", "II", "до 4.5м", volume=5000, floors=3)
    assert work.table_code == "1604-0305-01"
    assert calculate_inspection(work, handle).total_cost == 25648 * 50


def test_unknown_height_band_raises_with_criteria(handle) -> None:
    work = InspectionWork("III", "III", "свыше 7.2м", volume=5000)
    with pytest.raises(PriceNotFoundError) as excinfo:
        calculate_inspection(work, handle)
    assert excinfo.value.criteria["height_category"] == "свыше 7.2м"


def test_neutral_band_is_not_listed(handle) -> None:
    coefficients = handle.get_coefficients("4")
    work = InspectionWork("I", "I", "до 4.5м", volume=5000, structure_spacing="6-12м без подстропильных")
    assert inspection_factors(work, coefficients) == {"base": 1.0}


def test_missing_band_key_is_logged_and_omitted(handle, caplog) -> None:
    coefficients = handle.get_coefficients("4")
    work = InspectionWork("I", "I", "до 4.5м", volume=5000, seismicity=6)
    with caplog.at_level(logging.WARNING, logger="surveyest.calculators"):
        factors = inspection_factors(work, coefficients)
    assert "seismicity" not in factors
    assert "No seismicity coefficient" in caplog.text


@pytest.mark.parametrize(
    "kwargs",
    [
        {"building_category": "IV"},
        {"volume": 0},
        {"volume": -10},
        {"floors": 0},
        {"height_category": ""},
        {"conditions": frozenset({"volcano"})},
    ],
)
def test_inspection_validation(kwargs) -> None:
    params = {"building_category": "I", "work_complexity": "I", "height_category": "до 4.5м", "volume": 1000}
    params.update(kwargs)
    with pytest.raises(ValidationError):
        InspectionWork(**params)


def test_drilling_applies_volume_discount(handle) -> None:
    work = DrillingWork("light", "II", wells=10, depth=20)
    result = calculate_drilling(work, handle)
    assert result.coefficients == {"base": 1.0, "drilling_volume": 0.95}
    assert result.total_cost == 308750.00


def test_drilling_in_winter(handle) -> None:
    work = DrillingWork("light", "II", wells=10, depth=20, site=SiteConditions(season="winter"))
    result = calculate_drilling(work, handle)
    assert result.coefficients == {"base": 1.0, "drilling_volume": 0.95, "season": 1.3}
    assert result.total_cost == 401375.00


def test_deep_wells_get_depth_factor(handle) -> None:
    work = DrillingWork("heavy", "I", wells=2, depth=40)
    result = calculate_drilling(work, handle)
    assert result.coefficients["depth"] == 1.15


def test_pits_are_priced_per_cubic_metre(handle) -> None:
    work = DrillingWork("pit", "I", pits=2, pit_volume=3)
    result = calculate_drilling(work, handle)
    assert result.items[0].unit == "м³"
    assert result.coefficients == {"base": 1.0}
    assert result.total_cost == 112500.00


def test_drilling_requires_positive_quantity() -> None:
    with pytest.raises(ValidationError):
        DrillingWork("light", "II")


def test_special_conditions_are_validated() -> None:
    with pytest.raises(ValidationError):
        SiteConditions(special=frozenset({"meteorite"}))


def test_field_test(handle) -> None:
    work = FieldTestWork("cpt", "III", points=6, depth=10)
    result = calculate_field_test(work, handle)
    assert result.items[0].quantity == 60
    assert result.total_cost == 56280.00


def test_field_test_has_no_rows_for_rocky_soils(handle) -> None:
    with pytest.raises(PriceNotFoundError):
        calculate_field_test(FieldTestWork("dynamic", "V", points=6, depth=10), handle)


def test_laboratory_is_multi_line(handle) -> None:
    work = LaboratoryWork(
        tests=(LabTest("moisture", 10), LabTest("density", 10), LabTest("water_aggressiveness", 3)),
    )
    result = calculate_laboratory(work, handle)
    assert [item.code for item in result.items] == ["1602-0701-01", "1602-0701-02", "1602-0703-04"]
    assert [item.cost for item in result.items] == [5937.50, 8911.00, 16031.25]
    assert result.coefficients == {"base": 1.0, "laboratory_volume": 0.95}
    assert result.base_price == 32505.00
    assert result.total_cost == 30879.75


def test_laboratory_requires_tests() -> None:
    with pytest.raises(ValidationError):
        LaboratoryWork(tests=())


def test_table_work_uses_explicit_factors(handle) -> None:
    work = TableWork("2", "1602-0402", {"soil_category": "I"}, 100, {"urgency": 1.3}, module="geological")
    result = calculate_table_work(work, handle)
    assert result.total_cost == 65000.00
    assert result.metadata.module == "geological"


def test_repeated_calls_are_identical(handle, fixed_clock) -> None:
    work = InspectionWork("III", "III", "от 6 до 8м", volume=2200, conditions=frozenset({"difficult_soils"}))
    assert calculate_inspection(work, handle, fixed_clock) == calculate_inspection(work, handle, fixed_clock)


def test_topographic_survey_small_area(handle, fixed_clock) -> None:
    result = calculate_topographic_survey(TopographicSurveyWork("1:500", "II", area=5), handle, fixed_clock)
    assert result.items[0].code == "1601-0101-02"
    assert result.items[0].unit == "га"
    assert result.coefficients == {"base": 1.0}
    assert result.total_cost == 56250.00
    assert result.metadata.section == "1"
    assert result.metadata.module == "geodetic"


def test_topographic_survey_in_winter_on_hilly_terrain(handle) -> None:
    conditions = GeodeticConditions(season="winter", terrain="hilly", vegetation="none")
    result = calculate_topographic_survey(TopographicSurveyWork("1:500", "II", 5, conditions), handle)
    assert result.coefficients == {"base": 1.0, "season": 1.3, "terrain": 1.2}
    assert result.items[0].coefficient == 1.56
    assert result.total_cost == 87750.00


def test_topographic_survey_area_discount(handle) -> None:
    result = calculate_topographic_survey(TopographicSurveyWork("1:2000", "I", area=20), handle)
    assert result.coefficients == {"base": 1.0, "survey_area": 0.95}
    assert result.total_cost == 83125.00


def test_layout_of_building_axes_in_seismic_area(handle) -> None:
    work = LayoutWork("building_axes", "II", 2, GeodeticConditions(seismicity=8))
    result = calculate_layout(work, handle)
    assert result.items[0].unit == "здание"
    assert result.coefficients == {"base": 1.0, "seismicity": 1.3}
    assert result.total_cost == 113750.00


def test_deformation_monitoring_counts_marks_per_cycle(handle) -> None:
    result = calculate_deformation_monitoring(DeformationMonitoringWork("I", marks=10, cycles=4), handle)
    assert result.items[0].quantity == 40
    assert result.total_cost == 250000.00


def test_deformation_monitoring_of_tall_building_with_difficult_access(handle) -> None:
    work = DeformationMonitoringWork("I", marks=10, cycles=4, building_height=60, access="difficult")
    result = calculate_deformation_monitoring(work, handle)
    assert result.coefficients == {"base": 1.0, "building_height": 1.3, "access": 1.4}
    assert result.total_cost == 455000.00


def test_unknown_geodetic_condition_is_logged_and_omitted(handle, caplog) -> None:
    work = TopographicSurveyWork("1:1000", "I", 2, GeodeticConditions(terrain="swamp"))
    with caplog.at_level(logging.WARNING, logger="surveyest.calculators"):
        result = calculate_topographic_survey(work, handle)
    assert result.coefficients == {"base": 1.0}
    assert "No terrain coefficient" in caplog.text


@pytest.mark.parametrize(
    "factory",
    [
        lambda: TopographicSurveyWork("1:25000", "I", 1),
        lambda: TopographicSurveyWork("1:500", "V", 1),
        lambda: TopographicSurveyWork("1:500", "I", 0),
        lambda: LayoutWork("fence", "I", 1),
        lambda: DeformationMonitoringWork("I", marks=10, cycles=0),
        lambda: DepthSoundingWork("sonar", "I", 1),
        lambda: WaterSample("rain", 1),
        lambda: WaterSamplingWork(samples=()),
        lambda: MeteoObservationWork("radar", 1),
    ],
)
def test_geodetic_and_hydrographic_validation(factory) -> None:
    with pytest.raises(ValidationError):
        factory()


def test_depth_sounding_with_distance_discount_and_ice(handle) -> None:
    work = DepthSoundingWork("echo_sounder", "III", 60, HydroConditions(ice="thin_ice"))
    result = calculate_depth_sounding(work, handle)
    assert result.items[0].code == "1603-0101-03"
    assert result.coefficients == {"base": 1.0, "sounding_distance": 0.9, "ice": 1.3}
    assert result.items[0].coefficient == 1.17
    assert result.total_cost == 372972.60
    assert result.metadata.module == "hydrographic"


def test_water_sampling_is_multi_line(handle) -> None:
    work = WaterSamplingWork(
        samples=(WaterSample("surface", 10), WaterSample("bottom_sediment", 4)),
        conditions=HydroConditions(season="winter"),
    )
    result = calculate_water_sampling(work, handle)
    assert [item.code for item in result.items] == ["1603-0301-01", "1603-0301-03"]
    assert [item.cost for item in result.items] == [13132.00, 12252.80]
    assert result.base_price == 18132.00
    assert result.coefficients == {"base": 1.0, "season": 1.4}
    assert result.total_cost == 25384.80


def test_meteo_observation_in_storm(handle) -> None:
    work = MeteoObservationWork("auto_station", 3, HydroConditions(weather="storm"))
    result = calculate_meteo_observation(work, handle)
    assert result.items[0].unit == "месяц"
    assert result.total_cost == 337500.00


def test_project_conditions_for_inspection_tables(handle) -> None:
    conditions = PricingConditions(season="winter", seismicity=9, special_soils=("loess",))
    factors = condition_factors("4", handle.get_coefficients("4"), conditions)
    assert factors == {"winter_conditions": 1.25, "difficult_soils": 1.2, "seismicity": 1.4}


def test_project_conditions_for_geological_tables(handle) -> None:
    conditions = PricingConditions(
        season="summer", seismicity=5, hazards=("karst", "flooding"), aggressive_groundwater=True
    )
    factors = condition_factors("2", handle.get_coefficients("2"), conditions)
    assert factors == {"karst": 1.4, "aggressive": 1.2}


def test_project_conditions_for_hydrographic_tables(handle) -> None:
    factors = condition_factors("3", handle.get_coefficients("3"), PricingConditions(season="winter", seismicity=8))
    assert factors == {"season": 1.4}
