from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator

from selectolax.lexbor import LexborNode


class Category(str, Enum):
    PROVINCE = "Province"
    CITY = "City"
    COUNTY = "County"


@dataclass(frozen=True)
class AreaRecord:
    category: Category
    name: str
    code: str
    page: str | None
    parent_code: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "name": self.name,
            "code": self.code,
            "page": self.page,
            "parentCode": self.parent_code,
        }


@dataclass(frozen=True)
class LinkedCell:
    text: str
    href: str


@dataclass(frozen=True)
class PlainCell:
    text: str


Cell = LinkedCell | PlainCell


def read_cell(td: LexborNode) -> Cell:
    """Read a table cell as either a linked or a plain-text cell.

    Leaf rows on the statistics site (e.g. urban districts) have no page
    below them and their cells carry bare text instead of an anchor.
    """
    anchor = td.css_first("a")
    if anchor is not None:
        href = (anchor.attributes.get("href") or "").strip()
        if href:
            return LinkedCell(text=anchor.text(strip=True), href=href)
    return PlainCell(text=td.text(strip=True))


def _code_set(values: Iterable[Any] | None) -> frozenset[str] | None:
    if values is None:
        return None
    if isinstance(values, (str, int)):
        values = [values]
    return frozenset(str(v).strip() for v in values if str(v).strip())


@dataclass(frozen=True)
class ScopeFilter:
    """Restrict which parents get expanded.

    `None` for a level means every parent at that level is expanded.
    """

    provinces: frozenset[str] | None = None
    cities: frozenset[str] | None = None

    @classmethod
    def development(cls) -> "ScopeFilter":
        # Hubei province, Huanggang city: small enough for iterative runs.
        return cls(provinces=frozenset({"42"}), cities=frozenset({"421100000000"}))

    @classmethod
    def from_settings(cls, cfg: dict[str, Any] | None) -> "ScopeFilter":
        cfg = cfg or {}
        if not isinstance(cfg, dict):
            raise ValueError("scope must be a mapping with 'provinces' and/or 'cities'")
        return cls(
            provinces=_code_set(cfg.get("provinces")),
            cities=_code_set(cfg.get("cities")),
        )

    @property
    def is_unrestricted(self) -> bool:
        return self.provinces is None and self.cities is None

    def allows_province(self, code: str) -> bool:
        return self.provinces is None or code in self.provinces

    def allows_city(self, code: str) -> bool:
        return self.cities is None or code in self.cities

    def to_dict(self) -> dict[str, list[str] | None]:
        return {
            "provinces": sorted(self.provinces) if self.provinces is not None else None,
            "cities": sorted(self.cities) if self.cities is not None else None,
        }


@dataclass(frozen=True)
class AreaDataset:
    provinces: tuple[AreaRecord, ...] = ()
    cities: tuple[AreaRecord, ...] = ()
    counties: tuple[AreaRecord, ...] = ()
    scope: ScopeFilter = field(default_factory=ScopeFilter)

    def records(self) -> Iterator[AreaRecord]:
        yield from self.provinces
        yield from self.cities
        yield from self.counties

    def children_of(self, code: str) -> list[AreaRecord]:
        return [r for r in self.records() if r.parent_code == code]

    def counts(self) -> dict[str, int]:
        return {
            Category.PROVINCE.value: len(self.provinces),
            Category.CITY.value: len(self.cities),
            Category.COUNTY.value: len(self.counties),
        }
