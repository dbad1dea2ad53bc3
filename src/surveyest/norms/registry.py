"""
Versioned normative reference data: price tables and coefficient sets.

Tables are listed in a static source map keyed by ``(version, section, code)``
so that a missing data file can be reported at startup (see
:meth:`NormRegistry.missing_sources`) instead of surfacing halfway through an
estimate.  Data is read lazily and cached per registry instance; the cache is
append-only and never invalidated.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ..errors import CoefficientSetNotFoundError, TableIntegrityError, TableNotFoundError
from ..models import CoefficientSet, PriceTable, PriceTableRow, ThresholdScale
from .criteria import REQUIRED_COLUMNS, criteria_fields

LOGGER = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data"

SECTION_DIRS: Dict[str, str] = {
    "1": "section1-geodetic",
    "2": "section2-geological",
    "3": "section3-hydrographic",
    "4": "section4-inspection",
}

NORM_VERSIONS: Dict[str, date] = {
    "2025": date(2025, 1, 1),
}


@dataclass(frozen=True)
class TableSource:
    """Location of one table's data file relative to the data root."""

    relative_path: str
    family: str


def _geodetic(code: str) -> TableSource:
    return TableSource(f"2025/{SECTION_DIRS['1']}/{code}.csv", "geodetic")


def _hydrographic(code: str, family: str) -> TableSource:
    return TableSource(f"2025/{SECTION_DIRS['3']}/{code}.csv", family)


def _inspection(code: str) -> TableSource:
    return TableSource(f"2025/{SECTION_DIRS['4']}/{code}.csv", "inspection")


def _geological(code: str, family: str) -> TableSource:
    return TableSource(f"2025/{SECTION_DIRS['2']}/{code}.csv", family)


_TABLE_SOURCES: Dict[Tuple[str, str, str], TableSource] = {
    ("2025", "4", "1604-0301-01"): _inspection("1604-0301-01"),
    ("2025", "4", "1604-0302-01"): _inspection("1604-0302-01"),
    ("2025", "4", "1604-0303-01"): _inspection("1604-0303-01"),
    ("2025", "4", "1604-0304-01"): _inspection("1604-0304-01"),
    ("2025", "4", "1604-0305-01"): _inspection("1604-0305-01"),
    ("2025", "4", "1604-0306-01"): _inspection("1604-0306-01"),
    ("2025", "2", "1602-0201"): _geological("1602-0201", "soil"),
    ("2025", "2", "1602-0202"): _geological("1602-0202", "soil"),
    ("2025", "2", "1602-0203"): _geological("1602-0203", "soil"),
    ("2025", "2", "1602-0301"): _geological("1602-0301", "soil"),
    ("2025", "2", "1602-0401"): _geological("1602-0401", "soil"),
    ("2025", "2", "1602-0402"): _geological("1602-0402", "soil"),
    ("2025", "2", "1602-0701"): _geological("1602-0701", "laboratory"),
    ("2025", "2", "1602-0703"): _geological("1602-0703", "laboratory"),
    ("2025", "1", "1601-0101"): _geodetic("1601-0101"),
    ("2025", "1", "1601-0102"): _geodetic("1601-0102"),
    ("2025", "1", "1601-0103"): _geodetic("1601-0103"),
    ("2025", "1", "1601-0104"): _geodetic("1601-0104"),
    ("2025", "1", "1601-0201"): _geodetic("1601-0201"),
    ("2025", "1", "1601-0202"): _geodetic("1601-0202"),
    ("2025", "1", "1601-0301"): _geodetic("1601-0301"),
    ("2025", "3", "1603-0101"): _hydrographic("1603-0101", "hydrographic"),
    ("2025", "3", "1603-0102"): _hydrographic("1603-0102", "hydrographic"),
    ("2025", "3", "1603-0301"): _hydrographic("1603-0301", "water_sample"),
    ("2025", "3", "1603-0401"): _hydrographic("1603-0401", "meteo"),
}

_COEFFICIENT_SOURCES: Dict[Tuple[str, str], str] = {
    ("2025", "1"): f"2025/{SECTION_DIRS['1']}/coefficients.json",
    ("2025", "2"): f"2025/{SECTION_DIRS['2']}/coefficients.json",
    ("2025", "3"): f"2025/{SECTION_DIRS['3']}/coefficients.json",
    ("2025", "4"): f"2025/{SECTION_DIRS['4']}/coefficients.json",
}


class NormRegistry:
    """Resolves the active norm version and serves cached reference data.

    Parameters
    ----------
    data_dir:
        Root of the versioned data tree.  Defaults to the data packaged with
        :mod:`surveyest.norms`.
    version_override:
        Explicit version that wins over date-based resolution.
    today:
        Date used for version resolution; ``date.today()`` when omitted.
    """

    def __init__(
        self,
        data_dir: Path | None = None,
        version_override: Optional[str] = None,
        today: Optional[date] = None,
    ) -> None:
        self.data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        self.version_override = version_override or None
        self._today = today
        self._versions: Dict[str, date] = dict(NORM_VERSIONS)
        self._table_sources: Dict[Tuple[str, str, str], TableSource] = dict(_TABLE_SOURCES)
        self._coefficient_sources: Dict[Tuple[str, str], str] = dict(_COEFFICIENT_SOURCES)
        self._tables: Dict[Tuple[str, str, str], PriceTable] = {}
        self._coefficients: Dict[Tuple[str, str], CoefficientSet] = {}

    # -- registration -----------------------------------------------------

    def register_version(self, version: str, effective: date) -> None:
        self._versions[str(version)] = effective

    def register_table(self, version: str, section: str, code: str, relative_path: str, family: str) -> None:
        criteria_fields(family)
        self._table_sources[(str(version), str(section), str(code))] = TableSource(relative_path, family)

    def register_coefficients(self, version: str, section: str, relative_path: str) -> None:
        self._coefficient_sources[(str(version), str(section))] = relative_path

    def missing_sources(self) -> List[Tuple[str, ...]]:
        """Registered keys whose data file does not exist under ``data_dir``."""

        missing: List[Tuple[str, ...]] = []
        for key, source in sorted(self._table_sources.items()):
            if not (self.data_dir / source.relative_path).exists():
                missing.append(key)
        for key, relative in sorted(self._coefficient_sources.items()):
            if not (self.data_dir / relative).exists():
                missing.append(key)
        return missing

    def available_tables(self, version: Optional[str] = None) -> List[Tuple[str, str]]:
        resolved = self._resolve(version)
        return sorted((section, code) for (ver, section, code) in self._table_sources if ver == resolved)

    # -- version resolution ----------------------------------------------

    def resolve_active_version(self) -> str:
        if self.version_override:
            return self.version_override
        today = self._today or date.today()
        ordered = sorted(self._versions.items(), key=lambda item: item[1])
        effective = [version for version, start in ordered if start <= today]
        if effective:
            return effective[-1]
        return ordered[0][0] if ordered else "2025"

    def _resolve(self, version: Optional[str]) -> str:
        return str(version) if version else self.resolve_active_version()

    def handle(self, version: Optional[str] = None) -> "RegistryHandle":
        """Return a view of this registry pinned to one resolved version."""

        return RegistryHandle(registry=self, version=self._resolve(version))

    # -- data access -------------------------------------------------------

    def get_table(self, section: str, code: str, version: Optional[str] = None) -> PriceTable:
        resolved = self._resolve(version)
        key = (resolved, str(section), str(code))
        cached = self._tables.get(key)
        if cached is not None:
            return cached
        source = self._table_sources.get(key)
        if source is None:
            raise TableNotFoundError(str(section), str(code), resolved)
        path = self.data_dir / source.relative_path
        if not path.exists():
            raise TableNotFoundError(str(section), str(code), resolved, f"missing data file {path}")
        table = _load_table(path, key, source.family)
        self._tables[key] = table
        LOGGER.debug("Loaded table %s (section %s, %s rows) for norm version %s", code, section, len(table), resolved)
        return table

    def get_coefficients(self, section: str, version: Optional[str] = None) -> CoefficientSet:
        resolved = self._resolve(version)
        key = (resolved, str(section))
        cached = self._coefficients.get(key)
        if cached is not None:
            return cached
        relative = self._coefficient_sources.get(key)
        if relative is None:
            raise CoefficientSetNotFoundError(str(section), resolved)
        path = self.data_dir / relative
        if not path.exists():
            raise CoefficientSetNotFoundError(str(section), resolved, f"missing data file {path}")
        coefficients = _load_coefficients(path, key)
        self._coefficients[key] = coefficients
        LOGGER.debug("Loaded coefficient set for section %s, norm version %s", section, resolved)
        return coefficients

    def is_table_available(self, section: str, code: str, version: Optional[str] = None) -> bool:
        try:
            self.get_table(section, code, version)
        except Exception:
            LOGGER.debug("Table %s (section %s) unavailable", code, section, exc_info=True)
            return False
        return True


@dataclass(frozen=True)
class RegistryHandle:
    """A registry bound to one norm version, passed explicitly to calculators."""

    registry: NormRegistry
    version: str

    def get_table(self, section: str, code: str) -> PriceTable:
        return self.registry.get_table(section, code, self.version)

    def get_coefficients(self, section: str) -> CoefficientSet:
        return self.registry.get_coefficients(section, self.version)

    def is_table_available(self, section: str, code: str) -> bool:
        return self.registry.is_table_available(section, code, self.version)


def _load_table(path: Path, key: Tuple[str, str, str], family: str) -> PriceTable:
    fields = criteria_fields(family)
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
    df.columns = [str(col).strip() for col in df.columns]
    missing = [col for col in (*REQUIRED_COLUMNS, *fields) if col not in df.columns]
    if missing:
        raise TableIntegrityError(key, f"missing columns {missing}")
    for col in fields:
        df[col] = df[col].str.strip()

    prices = pd.to_numeric(df["price_per_unit"], errors="coerce")
    invalid = df.loc[prices.isna() | (prices <= 0), "code"].tolist()
    if invalid:
        raise TableIntegrityError(key, f"non-positive or non-numeric prices in rows {invalid}")

    duplicated = df.loc[df.duplicated(subset=list(fields), keep=False), "code"].tolist()
    if duplicated:
        raise TableIntegrityError(key, f"rows {duplicated} share the same criteria {list(fields)}")

    rows = []
    for record, price in zip(df.to_dict("records"), prices.tolist()):
        rows.append(
            PriceTableRow(
                code=record["code"].strip(),
                work_type=record["work_type"].strip(),
                unit=record["unit"].strip(),
                price_per_unit=float(price),
                criteria={col: record[col] for col in fields},
                description=str(record.get("description", "")).strip(),
            )
        )
    version, section, code = key
    return PriceTable(
        section=section,
        code=code,
        version=version,
        family=family,
        criteria_fields=fields,
        rows=tuple(rows),
    )


def _load_coefficients(path: Path, key: Tuple[str, str]) -> CoefficientSet:
    with path.open("r", encoding="utf-8") as handle:
        try:
            raw = json.load(handle)
        except json.JSONDecodeError as exc:
            raise TableIntegrityError(key, f"invalid JSON: {exc}") from exc

    try:
        flags = {str(name): float(value) for name, value in (raw.get("flags") or {}).items()}
        bands = {
            str(name): {str(band): float(value) for band, value in values.items()}
            for name, values in (raw.get("bands") or {}).items()
        }
        thresholds = {
            str(name): ThresholdScale(
                steps=tuple((float(bound), float(value)) for bound, value in entry["steps"]),
                default=float(entry.get("default", 1.0)),
                inclusive=bool(entry.get("inclusive", False)),
                applies_up_to=float(entry["applies_up_to"]) if entry.get("applies_up_to") is not None else None,
            )
            for name, entry in (raw.get("thresholds") or {}).items()
        }
    except (KeyError, TypeError, ValueError) as exc:
        raise TableIntegrityError(key, f"malformed coefficient data: {exc}") from exc

    multipliers = list(flags.values())
    multipliers += [value for values in bands.values() for value in values.values()]
    multipliers += [value for scale in thresholds.values() for _, value in scale.steps]
    if any(value <= 0 for value in multipliers):
        raise TableIntegrityError(key, "coefficients must be positive")

    version, section = key
    return CoefficientSet(
        section=section,
        version=version,
        flags=flags,
        bands=bands,
        thresholds=thresholds,
        title=str(raw.get("title", "")),
    )


__all__ = [
    "DEFAULT_DATA_DIR",
    "NORM_VERSIONS",
    "SECTION_DIRS",
    "NormRegistry",
    "RegistryHandle",
    "TableSource",
]
