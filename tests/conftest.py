from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Dict

import pytest

from surveyest.norms import NormRegistry
from surveyest.project import ProjectDescription

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def registry() -> NormRegistry:
    return NormRegistry(today=date(2025, 6, 1))


@pytest.fixture
def handle(registry: NormRegistry):
    return registry.handle()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def areal_project() -> Callable[..., ProjectDescription]:
    def _create(**overrides: Any) -> ProjectDescription:
        data: Dict[str, Any] = {
            "project_name": "Склад готовой продукции",
            "object_type": "areal",
            "design_stage": "project",
            "geotechnical_category": "II",
            "responsibility_level": "II",
            "area_ha": 2.0,
            "soil_category": "II",
            "lithologic_layers": 3,
            "foundation_type": "strip",
            "foundation_depth": 2.5,
        }
        data.update(overrides)
        return ProjectDescription.from_dict(data)

    return _create


@pytest.fixture
def linear_project() -> Callable[..., ProjectDescription]:
    def _create(**overrides: Any) -> ProjectDescription:
        data: Dict[str, Any] = {
            "project_name": "Автодорога Алматы - Капчагай",
            "object_type": "linear",
            "object_subtype": "road",
            "design_stage": "project",
            "linear_length": 12.0,
            "road_category": "II",
        }
        data.update(overrides)
        return ProjectDescription.from_dict(data)

    return _create
