from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from surveyest.errors import CoefficientSetNotFoundError, TableIntegrityError, TableNotFoundError
from surveyest.norms import NormRegistry


def _write_soil_table(path: Path, rows: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("code,work_type,unit,price_per_unit,soil_category\n" + rows, encoding="utf-8")


def test_packaged_data_has_no_missing_sources(registry: NormRegistry) -> None:
    assert registry.missing_sources() == []


def test_active_version_resolves_by_date() -> None:
    registry = NormRegistry(today=date(2026, 6, 1))
    registry.register_version("2026", date(2026, 1, 1))
    registry.register_version("2027", date(2027, 1, 1))
    assert registry.resolve_active_version() == "2026"


def test_active_version_falls_back_to_earliest_before_any_effective_date() -> None:
    registry = NormRegistry(today=date(2020, 1, 1))
    assert registry.resolve_active_version() == "2025"


def test_version_override_wins() -> None:
    registry = NormRegistry(version_override="2024", today=date(2025, 6, 1))
    assert registry.resolve_active_version() == "2024"
    with pytest.raises(TableNotFoundError) as excinfo:
        registry.get_table("4", "1604-0301-01")
    assert excinfo.value.version == "2024"


def test_get_table_loads_rows_with_criteria(registry: NormRegistry) -> None:
    table = registry.get_table("4", "1604-0301-01")
    assert table.family == "inspection"
    assert table.criteria_fields == ("building_category", "floors", "work_complexity", "height_category")
    first = table.rows[0]
    assert first.price_per_unit == 3893
    assert first.criteria == {
        "building_category": "I",
        "floors": "single",
        "work_complexity": "I",
        "height_category": "до 4.5м",
    }


def test_tables_are_cached_per_registry(registry: NormRegistry) -> None:
    assert registry.get_table("2", "1602-0201") is registry.get_table("2", "1602-0201")
    other = NormRegistry(today=date(2025, 6, 1))
    assert other.get_table("2", "1602-0201") is not registry.get_table("2", "1602-0201")


def test_unknown_table_reports_failing_key(registry: NormRegistry) -> None:
    with pytest.raises(TableNotFoundError) as excinfo:
        registry.get_table("4", "1604-9999-01")
    assert (excinfo.value.section, excinfo.value.code, excinfo.value.version) == ("4", "1604-9999-01", "2025")
    assert registry.is_table_available("4", "1604-9999-01") is False
    assert registry.is_table_available("4", "1604-0301-01") is True


def test_unknown_coefficient_section(registry: NormRegistry) -> None:
    with pytest.raises(CoefficientSetNotFoundError):
        registry.get_coefficients("5")


def test_coefficient_set_parses_flags_bands_and_thresholds(registry: NormRegistry) -> None:
    coefficients = registry.get_coefficients("4")
    assert coefficients.flag("winter_conditions") == 1.25
    assert coefficients.band("seismicity", 8) == 1.3
    assert coefficients.band("structure_spacing", "до 6м") == 1.15
    assert coefficients.threshold("small_volume", 500) == 2.8
    assert coefficients.threshold("small_volume", 499) == 3.5
    assert coefficients.threshold("small_volume", 5000) is None

    geological = registry.get_coefficients("2")
    assert geological.threshold("depth", 30) == 1.0
    assert geological.threshold("depth", 30.5) == 1.15
    assert geological.threshold("drilling_volume", 5000) == 0.8

    geodetic = registry.get_coefficients("1")
    assert geodetic.band("terrain", "mountainous") == 1.5
    assert geodetic.threshold("survey_area", 9.9) == 1.0
    assert geodetic.threshold("survey_area", 10) == 0.95
    assert geodetic.threshold("building_height", 30) == 1.0
    assert geodetic.threshold("building_height", 120) == 1.5

    hydrographic = registry.get_coefficients("3")
    assert hydrographic.band("season", "spring") == 1.2
    assert hydrographic.band("seismicity", 8) is None
    assert hydrographic.threshold("sounding_distance", 600) == 0.8


def test_missing_data_file_is_reported(tmp_path: Path) -> None:
    registry = NormRegistry(data_dir=tmp_path, today=date(2025, 6, 1))
    assert ("2025", "4", "1604-0301-01") in registry.missing_sources()
    with pytest.raises(TableNotFoundError, match="missing data file"):
        registry.get_table("4", "1604-0301-01")


def test_duplicate_criteria_rows_fail_integrity_check(tmp_path: Path) -> None:
    _write_soil_table(tmp_path / "custom" / "dup.csv", "X-01,Бурение,м,100,I\nX-02,Бурение,м,120,I\n")
    registry = NormRegistry(data_dir=tmp_path, today=date(2025, 6, 1))
    registry.register_table("2025", "9", "X", "custom/dup.csv", "soil")
    with pytest.raises(TableIntegrityError, match="share the same criteria"):
        registry.get_table("9", "X")


def test_non_positive_price_fails_integrity_check(tmp_path: Path) -> None:
    _write_soil_table(tmp_path / "custom" / "zero.csv", "X-01,Бурение,м,0,I\n")
    registry = NormRegistry(data_dir=tmp_path, today=date(2025, 6, 1))
    registry.register_table("2025", "9", "X", "custom/zero.csv", "soil")
    with pytest.raises(TableIntegrityError):
        registry.get_table("9", "X")


def test_missing_criteria_column_fails_integrity_check(tmp_path: Path) -> None:
    path = tmp_path / "custom" / "nocat.csv"
    path.parent.mkdir(parents=True)
    path.write_text("code,work_type,unit,price_per_unit\nX-01,Бурение,м,100\n", encoding="utf-8")
    registry = NormRegistry(data_dir=tmp_path, today=date(2025, 6, 1))
    registry.register_table("2025", "9", "X", "custom/nocat.csv", "soil")
    with pytest.raises(TableIntegrityError, match="missing columns"):
        registry.get_table("9", "X")


def test_register_table_rejects_unknown_family(registry: NormRegistry) -> None:
    with pytest.raises(KeyError):
        registry.register_table("2025", "9", "X", "custom/x.csv", "unknown")


def test_negative_coefficients_fail_integrity_check(tmp_path: Path) -> None:
    path = tmp_path / "custom" / "coefficients.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"flags": {"winter": -1.0}}), encoding="utf-8")
    registry = NormRegistry(data_dir=tmp_path, today=date(2025, 6, 1))
    registry.register_coefficients("2025", "9", "custom/coefficients.json")
    with pytest.raises(TableIntegrityError, match="positive"):
        registry.get_coefficients("9")


def test_handles_pin_independent_versions(tmp_path: Path) -> None:
    _write_soil_table(tmp_path / "2026" / "soil.csv", "Y-01,Бурение,м,200,I\n")
    registry = NormRegistry(today=date(2025, 6, 1))
    registry.register_version("2026", date(2026, 1, 1))
    registry.register_table("2026", "2", "1602-0201", str(tmp_path / "2026" / "soil.csv"), "soil")

    current = registry.handle()
    future = registry.handle("2026")
    assert current.version == "2025"
    assert current.get_table("2", "1602-0201").rows[0].price_per_unit == 625
    assert future.get_table("2", "1602-0201").rows[0].price_per_unit == 200


def test_available_tables_lists_registered_keys(registry: NormRegistry) -> None:
    tables = registry.available_tables()
    assert ("4", "1604-0305-01") in tables
    assert ("2", "1602-0703") in tables
    assert ("1", "1601-0301") in tables
    assert ("3", "1603-0401") in tables
    assert len(tables) == 25
    assert {section for section, _ in tables} == {"1", "2", "3", "4"}
