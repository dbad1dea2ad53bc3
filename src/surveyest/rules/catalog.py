"""
Built-in instruction blocks for engineering-geological surveys (rule set 2025).

Blocks are declared in the order the engine visits them.  Work items that have
a counterpart in the section 2 or section 4 price tables carry a
:class:`~surveyest.models.PriceReference` so the assignment can be priced
without re-deriving quantities.
"""
from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

from ..calculators import inspection_table_code
from ..errors import ValidationError
from ..models import PriceReference, WorkItem
from ..project import ProjectDescription
from .engine import (
    HIGHEST,
    MANDATORY,
    RECOMMENDED,
    REFERENCE,
    InstructionBlock,
    InstructionVariant,
    NormativeReference,
)

DEFAULT_RULE_SET = "2025"

SP_102 = "СП РК 1.02-102-2014"
SP_105 = "СП РК 1.02-105-2014"
IGI_RULES = "Правила осуществления инженерно-геологических изысканий"
ST_1399 = "СТ РК 1399-2005"
VSN_34 = "ВСН 34.2-88"
GOST_CPT = "ГОСТ 19912-2012"
GOST_INSPECTION = "ГОСТ 31937-2011"
SP_SEISMIC = "СП РК 2.03-30-2017"

GEOLOGICAL = "2"
INSPECTION = "4"

_SAMPLES_PER_LAYER = {"I": 6, "II": 10, "III": 15}
_DEFAULT_DEPTH = {"I": 10.0, "II": 15.0, "III": 20.0}
_CPT_RATIO = {"I": 0.5, "II": 0.75, "III": 1.0}
_CPT_SOILS = ("I", "II", "III", "IV")


# -- quantity helpers ------------------------------------------------------


def site_area_m2(project: ProjectDescription) -> float:
    if project.area_ha:
        return project.area_ha * 10000
    if project.building_area:
        return float(project.building_area)
    return 10000.0


def grid_wells(project: ProjectDescription, spacing: float, min_wells: int) -> int:
    """Boreholes needed to cover the site with a square grid of ``spacing`` metres."""

    return max(min_wells, math.ceil(site_area_m2(project) / (spacing * spacing)))


def well_depth(project: ProjectDescription) -> float:
    if project.pile_length:
        return project.pile_length + 5.0
    if project.foundation_depth:
        return project.foundation_depth + 10.0
    return _DEFAULT_DEPTH.get(project.geotechnical_category or "II", 15.0)


def soil_category(project: ProjectDescription) -> str:
    return project.soil_category or "II"


def _drilling_ref(project: ProjectDescription, wells: int) -> PriceReference:
    depth = well_depth(project)
    return PriceReference(
        section=GEOLOGICAL,
        table_code="1602-0203" if depth > 15 else "1602-0202",
        criteria={"soil_category": soil_category(project)},
        quantity=wells * depth,
    )


def _work(
    variant: InstructionVariant,
    work_id: str,
    name: str,
    quantity: float,
    unit: str,
    category: str,
    description: str = "",
    price_ref: Optional[PriceReference] = None,
    module: str = "geological",
    tags: Tuple[str, ...] = (),
) -> WorkItem:
    return WorkItem(
        work_id=work_id,
        name=name,
        quantity=quantity,
        unit=unit,
        category=category,
        module=module,
        normative_base=str(variant.normative),
        description=description,
        priority_level=variant.priority_level,
        tags=tags,
        price_ref=price_ref,
    )


# -- section 2: reconnaissance and archive materials ------------------------


def _reconnaissance_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    return [
        _work(variant, "RECON-001", "Рекогносцировочное обследование территории", 1, "объект", "mandatory",
              tags=("рекогносцировка",))
    ]


def _route_km(project: ProjectDescription) -> float:
    if project.is_linear and project.linear_length:
        return float(project.linear_length)
    return max(1.0, round(site_area_m2(project) / 10000 * 0.2, 1))


def _route_mapping_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    km = _route_km(project)
    return [
        _work(variant, "ROUTE-001", "Маршрутные наблюдения с составлением инженерно-геологической карты", km,
              "км маршрутов", "recommended", description=f"{km} км маршрутов")
    ]


def _route_archive_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    return [
        _work(variant, "ROUTE-002", "Маршрутные наблюдения с уточнением фондовых материалов", _route_km(project),
              "км маршрутов", "optional")
    ]


def _archive_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    description = "Анализ материалов изысканий прошлых лет" if project.existing_data else "Запрос фондовых материалов"
    return [
        _work(variant, "archive-collection", "Сбор и обработка материалов прошлых лет", 1, "комплект",
              "mandatory", description=description)
    ]


# -- section 5: areal drilling grid ---------------------------------------


def _grid_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    spacing = float(variant.values["spacing"])
    wells = grid_wells(project, spacing, int(variant.values["min_wells"]))
    category = "mandatory" if variant.priority >= MANDATORY else "recommended"
    return [
        _work(
            variant,
            "drilling-grid",
            "Бурение скважин по сетке",
            wells,
            "скв",
            category,
            description=f"{wells} скважин с расстоянием {spacing:g} м, глубина {well_depth(project):g} м",
            price_ref=_drilling_ref(project, wells),
            tags=("бурение",),
        )
    ]


# (geotechnical category, responsibility level) -> (spacing m, minimum wells)
_GRID_SPACING: Dict[Tuple[str, str], Tuple[float, int]] = {
    ("I", "I"): (75, 3),
    ("I", "II"): (100, 3),
    ("I", "III"): (150, 2),
    ("II", "I"): (50, 4),
    ("II", "II"): (75, 3),
    ("II", "III"): (100, 3),
    ("III", "I"): (25, 5),
    ("III", "II"): (40, 4),
    ("III", "III"): (50, 4),
}

_GRID_SPACING_2020: Dict[Tuple[str, str], Tuple[float, int]] = {
    ("I", "I"): (60, 3),
    ("II", "I"): (40, 4),
    ("III", "I"): (20, 5),
}


def _grid_block(category: str, responsibility: str) -> InstructionBlock:
    spacing, min_wells = _GRID_SPACING[(category, responsibility)]
    variants = [
        InstructionVariant(
            id="variant-mandatory-sp-rk-105",
            priority=MANDATORY,
            normative=NormativeReference(SP_105, "Таблица 1"),
            recommendation=f"Расстояние между выработками не более {spacing:g} м, минимум {min_wells} выработки",
            values={"spacing": spacing, "min_wells": min_wells},
            generate_works=_grid_works,
        )
    ]
    stricter = _GRID_SPACING_2020.get((category, responsibility))
    if stricter is not None:
        variants.append(
            InstructionVariant(
                id="variant-highest-rules-2020",
                priority=HIGHEST,
                normative=NormativeReference(IGI_RULES, "п. 15"),
                recommendation=f"Для объектов I уровня ответственности расстояние не более {stricter[0]:g} м",
                values={"spacing": stricter[0], "min_wells": stricter[1]},
                generate_works=_grid_works,
            )
        )
    suffix = f"cat{category.lower()}-resp{responsibility.lower()}"
    return InstructionBlock(
        id=f"block-05-grid-{suffix}",
        section="Раздел 5: Буровые работы",
        title=f"Расстояние между выработками (геотехн. кат. {category}, ответственность {responsibility})",
        condition=lambda p, c=category, r=responsibility: (
            p.is_areal and p.geotechnical_category == c and p.responsibility_level == r
        ),
        variants=tuple(variants),
        mandatory=True,
        tags=("площадной", "бурение"),
    )


_default_grid = InstructionBlock(
    id="block-05-grid-default",
    section="Раздел 5: Буровые работы",
    title="Расстояние между выработками (категории не заданы)",
    condition=lambda p: p.is_areal and (p.geotechnical_category is None or p.responsibility_level is None),
    variants=(
        InstructionVariant(
            id="variant-recommended-default-grid",
            priority=RECOMMENDED,
            normative=NormativeReference(SP_105, "Таблица 1"),
            recommendation="Сетка 50 м до установления категории сложности",
            values={"spacing": 50, "min_wells": 3},
            generate_works=_grid_works,
            warnings=("Геотехническая категория или уровень ответственности не заданы: принята сетка 50 м",),
        ),
    ),
    tags=("площадной", "бурение"),
)


# -- section 6: linear objects --------------------------------------------


def _linear_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    length = float(project.linear_length or 10.0)
    if variant.id == "variant-specialized-st-rk-1399":
        spacing = 1000.0 if project.design_stage in ("pre_project", "feasibility") else 500.0
    else:
        spacing = float(variant.values["spacing"])
    wells = math.ceil(length * 1000 / spacing)
    return [
        _work(
            variant,
            "linear-route-wells",
            "Буровые скважины вдоль трассы",
            wells,
            "скв",
            "mandatory",
            description=f"{wells} скважин с шагом {spacing:g} м на {length:g} км трассы",
            price_ref=_drilling_ref(project, wells),
            tags=("линейные",),
        )
    ]


_linear_route = InstructionBlock(
    id="block-06-linear-route",
    section="Раздел 6: Линейные объекты",
    title="Выработки по трассе линейного объекта",
    condition=lambda p: p.is_linear,
    variants=(
        InstructionVariant(
            id="variant-specialized-st-rk-1399",
            priority=MANDATORY,
            normative=NormativeReference(ST_1399, "Приложение Е"),
            recommendation="Расстояние между выработками 1000-500 м в зависимости от стадии",
            condition=lambda p: p.object_subtype == "road",
            generate_works=_linear_works,
            note="Для автомобильных дорог применяется специализированный документ",
        ),
        InstructionVariant(
            id="variant-mandatory-sp-rk-102",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "п. 7.5"),
            recommendation="Расстояние между выработками не более 500 м",
            values={"spacing": 500},
            generate_works=_linear_works,
        ),
    ),
    mandatory=True,
    tags=("линейные", "бурение"),
)


# -- section 11: field tests ------------------------------------------------


def _cpt_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    category = project.geotechnical_category or "II"
    spacing, min_wells = _GRID_SPACING.get((category, project.responsibility_level or "II"), (50, 3))
    wells = grid_wells(project, spacing, min_wells)
    points = max(6, math.ceil(wells * _CPT_RATIO[category]))
    depth = well_depth(project)
    price_ref = None
    if soil_category(project) in _CPT_SOILS:
        price_ref = PriceReference(
            section=GEOLOGICAL,
            table_code="1602-0401",
            criteria={"soil_category": soil_category(project)},
            quantity=points * depth,
        )
    return [
        _work(variant, "cpt-piles", "Статическое зондирование для свайных фундаментов", points, "точка",
              "mandatory", description=f"{points} точек глубиной {depth:g} м", price_ref=price_ref,
              tags=("зондирование",))
    ]


_cpt_for_piles = InstructionBlock(
    id="block-11-cpt-piles",
    section="Раздел 11: Полевые испытания грунтов",
    title="Статическое зондирование для свайных фундаментов",
    condition=lambda p: p.is_areal and p.foundation_type in ("pile", "pile_slab"),
    variants=(
        InstructionVariant(
            id="variant-mandatory-gost-19912",
            priority=MANDATORY,
            normative=NormativeReference(GOST_CPT, "п. 5"),
            recommendation="Статическое зондирование в количестве не менее 6 точек",
            generate_works=_cpt_works,
        ),
    ),
    tags=("сваи", "зондирование"),
)


# -- section 9: laboratory ------------------------------------------------


def _lab_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    layers = project.lithologic_layers or 1
    samples = layers * _SAMPLES_PER_LAYER.get(project.geotechnical_category or "I", 6)
    tests = (
        ("lab-moisture", "Определение природной влажности", "moisture"),
        ("lab-density", "Определение плотности грунта", "density"),
        ("lab-grain-size", "Гранулометрический состав (ситовой метод)", "grain_size_sieve"),
    )
    return [
        _work(
            variant,
            work_id,
            name,
            samples,
            "проба",
            "mandatory",
            description=f"{layers} ИГЭ x {samples // layers} проб",
            price_ref=PriceReference(section=GEOLOGICAL, table_code="1602-0701", criteria={"test_type": test}),
            tags=("лаборатория",),
        )
        for work_id, name, test in tests
    ]


_laboratory = InstructionBlock(
    id="block-09-laboratory",
    section="Раздел 9: Лабораторные исследования",
    title="Минимальный объём лабораторных определений",
    variants=(
        InstructionVariant(
            id="variant-mandatory-sp-rk-102",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "п. 6.6"),
            recommendation="Не менее 6/10/15 определений на инженерно-геологический элемент по категориям I/II/III",
            generate_works=_lab_works,
        ),
    ),
    mandatory=True,
    tags=("лаборатория",),
)


def _water_chemistry_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    category = "mandatory" if variant.priority >= MANDATORY else "recommended"
    works = [
        _work(variant, "lab-water-aggressiveness", "Агрессивность грунтовых вод к бетону", 3, "проба", category,
              price_ref=PriceReference(GEOLOGICAL, "1602-0703", {"test_type": "water_aggressiveness"}))
    ]
    if project.groundwater_aggressive:
        works.append(
            _work(variant, "lab-corrosion", "Коррозионная активность грунта", 3, "проба", category,
                  price_ref=PriceReference(GEOLOGICAL, "1602-0703", {"test_type": "corrosion_activity"}))
        )
    return works


_water_chemistry = InstructionBlock(
    id="block-09-water-chemistry",
    section="Раздел 9: Лабораторные исследования",
    title="Химический анализ подземных вод",
    condition=lambda p: p.groundwater_depth is not None or p.groundwater_aggressive,
    variants=(
        InstructionVariant(
            id="variant-aggressive-water",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "п. 6.8"),
            recommendation="Определение агрессивности подземных вод обязательно",
            condition=lambda p: p.groundwater_aggressive,
            generate_works=_water_chemistry_works,
        ),
        InstructionVariant(
            id="variant-recommended-water",
            priority=RECOMMENDED,
            normative=NormativeReference(SP_102, "п. 6.8"),
            recommendation="Рекомендуется отбор проб воды из каждого водоносного горизонта",
            generate_works=_water_chemistry_works,
        ),
    ),
    tags=("лаборатория", "гидрогеология"),
)


# -- section 10: hydrogeology ---------------------------------------------


def _shallow_groundwater(project: ProjectDescription) -> bool:
    if project.groundwater_depth is None:
        return False
    limit = max(10.0, (project.foundation_depth or 0) + 2.0)
    return project.groundwater_depth <= limit


def _hydro_wells(project: ProjectDescription) -> int:
    wells = max(1, math.ceil(site_area_m2(project) / 1_000_000 * 1.5))
    if project.geotechnical_category == "III":
        wells = math.ceil(wells * 1.3)
    return wells


def _pilot_pumping_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    wells = _hydro_wells(project)
    return [
        _work(variant, "hydro-wells", "Гидрогеологические скважины", wells, "скв", "mandatory"),
        _work(variant, "hydro-pumping", "Опытные откачки", wells, "опыт", "mandatory",
              description="Опытные откачки с наблюдательными скважинами"),
    ]


def _express_pumping_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    wells = _hydro_wells(project)
    return [
        _work(variant, "hydro-wells", "Гидрогеологические скважины", wells, "скв", "mandatory"),
        _work(variant, "hydro-pumping", "Экспресс-откачки", wells, "опыт", "recommended"),
    ]


_hydrogeology = InstructionBlock(
    id="block-10-hydrogeology",
    section="Раздел 10: Гидрогеологические исследования",
    title="Гидрогеологические исследования при неглубоком залегании подземных вод",
    condition=_shallow_groundwater,
    variants=(
        InstructionVariant(
            id="variant-pilot-pumping",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "п. 6.7"),
            recommendation="Опытные откачки для сложных условий и объектов I уровня ответственности",
            condition=lambda p: p.geotechnical_category == "III" or p.responsibility_level == "I",
            generate_works=_pilot_pumping_works,
        ),
        InstructionVariant(
            id="variant-express-pumping",
            priority=RECOMMENDED,
            normative=NormativeReference(SP_102, "п. 6.7"),
            recommendation="Экспресс-откачки из разведочных скважин",
            generate_works=_express_pumping_works,
        ),
    ),
    tags=("гидрогеология",),
)


# -- special soils, hazards, seismicity, geophysics ------------------------


def _special_soil_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    return [
        _work(variant, f"special-soils-{soil}", f"Специальные исследования грунтов: {soil}", 6, "проба",
              "mandatory", tags=("специфические-грунты",))
        for soil in project.special_soils
    ]


_special_soils = InstructionBlock(
    id="block-12-special-soils",
    section="Раздел 12: Специфические грунты",
    title="Исследования специфических грунтов",
    condition=lambda p: bool(p.special_soils),
    variants=(
        InstructionVariant(
            id="variant-mandatory-sp-rk-102",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "раздел 8"),
            recommendation="Специальные определения для каждого вида специфических грунтов",
            generate_works=_special_soil_works,
        ),
    ),
    tags=("специфические-грунты",),
)


def _hazard_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    return [
        _work(variant, f"hazard-{hazard}", f"Изучение опасных геологических процессов: {hazard}", 1, "комплекс",
              "recommended")
        for hazard in project.hazards
    ]


_hazards = InstructionBlock(
    id="block-13-hazards",
    section="Раздел 13: Опасные геологические процессы",
    title="Изучение опасных геологических процессов",
    condition=lambda p: bool(p.hazards),
    variants=(
        InstructionVariant(
            id="variant-mandatory-sp-rk-102",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "раздел 9"),
            recommendation="Оценка активности процессов и прогноз их развития",
            generate_works=_hazard_works,
            warnings=("На участке выявлены опасные геологические процессы",),
        ),
    ),
    tags=("процессы",),
)


def _seismic_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    category = "mandatory" if variant.priority >= MANDATORY else "recommended"
    return [
        _work(variant, "seismic-microzoning", "Сейсмическое микрорайонирование", 1, "объект", category,
              description=f"Исходная сейсмичность {project.seismicity} баллов")
    ]


_seismic = InstructionBlock(
    id="block-14-seismic",
    section="Раздел 14: Сейсмичность",
    title="Сейсмическое микрорайонирование",
    condition=lambda p: (p.seismicity or 0) >= 7,
    variants=(
        InstructionVariant(
            id="variant-mandatory-high-seismicity",
            priority=MANDATORY,
            normative=NormativeReference(SP_SEISMIC, "п. 4.2"),
            recommendation="Сейсмическое микрорайонирование обязательно при сейсмичности 8 баллов и выше",
            condition=lambda p: (p.seismicity or 0) >= 8,
            generate_works=_seismic_works,
            recommendations=("Учесть сейсмичность площадки при выборе глубины выработок",),
        ),
        InstructionVariant(
            id="variant-recommended-seismicity",
            priority=RECOMMENDED,
            normative=NormativeReference(SP_SEISMIC, "п. 4.2"),
            recommendation="Сейсмическое микрорайонирование рекомендуется при сейсмичности 7 баллов",
            generate_works=_seismic_works,
        ),
    ),
    tags=("сейсмика",),
)


def _geophysics_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    return [
        _work(variant, f"geophysics-{method}", f"Геофизические исследования: {method}", 1, "комплекс",
              "optional", tags=("геофизика",))
        for method in project.geophysics_methods
    ]


_geophysics = InstructionBlock(
    id="block-15-geophysics",
    section="Раздел 15: Геофизические исследования",
    title="Геофизические исследования",
    condition=lambda p: bool(p.geophysics_methods),
    variants=(
        InstructionVariant(
            id="variant-reference-vsn",
            priority=REFERENCE,
            normative=NormativeReference(VSN_34, "раздел 4"),
            recommendation="Геофизика по справочным указаниям ВСН",
            generate_works=_geophysics_works,
        ),
        InstructionVariant(
            id="variant-recommended-sp-rk-102",
            priority=RECOMMENDED,
            normative=NormativeReference(SP_102, "п. 6.4"),
            recommendation="Геофизические методы для уточнения геологического разреза",
            generate_works=_geophysics_works,
        ),
    ),
    tags=("геофизика",),
)


# -- section 4: inspection of existing buildings ----------------------------


def _inspection_works(project: ProjectDescription, variant: InstructionVariant) -> List[WorkItem]:
    complexity = str(variant.values.get("complexity", "I"))
    volume = float(project.building_volume or 0)
    price_ref = None
    if project.building_category and project.height_category:
        multi = (project.floors or 1) > 1
        price_ref = PriceReference(
            section=INSPECTION,
            table_code=inspection_table_code(project.building_category, multi),
            criteria={
                "building_category": project.building_category,
                "floors": "multi" if multi else "single",
                "work_complexity": complexity,
                "height_category": project.height_category,
            },
        )
    return [
        _work(
            variant,
            "inspection-structures",
            "Обследование строительных конструкций здания",
            volume / 100,
            "100 м³",
            "mandatory",
            description=f"Категория сложности работ {complexity}",
            price_ref=price_ref,
            module="inspection",
            tags=("обследование",),
        )
    ]


_inspection = InstructionBlock(
    id="block-16-inspection",
    section="Раздел 16: Обследование зданий",
    title="Обследование технического состояния строительных конструкций",
    condition=lambda p: bool(p.building_volume)
    and (p.construction_phase in ("operation", "reconstruction") or p.structural_deformations or p.emergency_situation),
    variants=(
        InstructionVariant(
            id="variant-emergency-detailed",
            priority=HIGHEST,
            normative=NormativeReference(GOST_INSPECTION, "п. 5.1.11"),
            recommendation="Детальное инструментальное обследование аварийного объекта",
            condition=lambda p: p.emergency_situation,
            values={"complexity": "III"},
            generate_works=_inspection_works,
            warnings=("Аварийное состояние: требуется немедленное ограничение эксплуатации",),
        ),
        InstructionVariant(
            id="variant-deformations-detailed",
            priority=MANDATORY,
            normative=NormativeReference(GOST_INSPECTION, "п. 5.1.9"),
            recommendation="Детальное обследование при выявленных деформациях",
            condition=lambda p: p.structural_deformations,
            values={"complexity": "II"},
            generate_works=_inspection_works,
        ),
        InstructionVariant(
            id="variant-general-visual",
            priority=RECOMMENDED,
            normative=NormativeReference(GOST_INSPECTION, "п. 5.1.6"),
            recommendation="Общее визуальное обследование",
            values={"complexity": "I"},
            generate_works=_inspection_works,
        ),
    ),
    mandatory=True,
    tags=("обследование",),
)


# -- report ------------------------------------------------------------------


_report = InstructionBlock(
    id="block-17-report",
    section="Раздел 17: Камеральные работы",
    title="Технический отчёт",
    variants=(
        InstructionVariant(
            id="variant-mandatory-sp-rk-102",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "раздел 10"),
            recommendation="Технический отчёт по результатам изысканий",
            generate_works=lambda p, v: [
                _work(v, "report", "Составление технического отчёта", 1, "отчёт", "mandatory")
            ],
        ),
    ),
    mandatory=True,
    dependencies=("block-02-reconnaissance",),
    tags=("отчёт",),
)


_reconnaissance = InstructionBlock(
    id="block-02-reconnaissance",
    section="Раздел 2: Рекогносцировочное обследование",
    title="Рекогносцировочное обследование территории",
    variants=(
        InstructionVariant(
            id="variant-full-reconnaissance",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "п. 5.2"),
            recommendation="Рекогносцировочное обследование выполняется на всех объектах",
            generate_works=_reconnaissance_works,
        ),
    ),
    mandatory=True,
    tags=("рекогносцировка",),
)

_route_observations = InstructionBlock(
    id="block-02-route-observations",
    section="Раздел 2: Рекогносцировочное обследование",
    title="Маршрутные наблюдения",
    variants=(
        InstructionVariant(
            id="variant-with-mapping",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "п. 5.3"),
            recommendation="Маршрутные наблюдения с составлением карты при отсутствии фондовых материалов",
            condition=lambda p: not p.existing_data,
            generate_works=_route_mapping_works,
        ),
        InstructionVariant(
            id="variant-archive-review",
            priority=RECOMMENDED,
            normative=NormativeReference(SP_102, "п. 5.3"),
            recommendation="Уточнение фондовых материалов маршрутными наблюдениями",
            generate_works=_route_archive_works,
        ),
    ),
    tags=("рекогносцировка",),
)

_archive = InstructionBlock(
    id="block-04-archive-materials",
    section="Раздел 4: Последовательность работ",
    title="Сбор материалов изысканий прошлых лет",
    variants=(
        InstructionVariant(
            id="variant-highest-rules",
            priority=HIGHEST,
            normative=NormativeReference(IGI_RULES, "п. 8"),
            recommendation="Материалы прошлых лет используются при давности не более 5 лет",
            condition=lambda p: p.existing_data,
            generate_works=_archive_works,
        ),
        InstructionVariant(
            id="variant-mandatory-sp-rk-102",
            priority=MANDATORY,
            normative=NormativeReference(SP_102, "п. 5.1"),
            recommendation="Сбор и анализ фондовых материалов",
            generate_works=_archive_works,
        ),
    ),
    mandatory=True,
    tags=("фонды",),
)


BLOCKS_2025: Tuple[InstructionBlock, ...] = (
    _reconnaissance,
    _route_observations,
    _archive,
    *(_grid_block(category, responsibility) for category, responsibility in _GRID_SPACING),
    _default_grid,
    _linear_route,
    _cpt_for_piles,
    _laboratory,
    _water_chemistry,
    _hydrogeology,
    _special_soils,
    _hazards,
    _seismic,
    _geophysics,
    _inspection,
    _report,
)

RULE_SETS: Dict[str, Tuple[InstructionBlock, ...]] = {
    "2025": BLOCKS_2025,
}


def get_rule_set(version: Optional[str] = None) -> Tuple[InstructionBlock, ...]:
    key = version or DEFAULT_RULE_SET
    try:
        return RULE_SETS[key]
    except KeyError:
        raise ValidationError(f"Unknown rule set version: {key}", "rule_set_version") from None


__all__ = [
    "BLOCKS_2025",
    "DEFAULT_RULE_SET",
    "RULE_SETS",
    "get_rule_set",
    "grid_wells",
    "site_area_m2",
    "soil_category",
    "well_depth",
]
