"""Filter, order and page the ledger.

Filters combine with AND. A search query that is a prefix of one of the
status/disposition keywords switches to an exact match on that field and does
not fall back to substring search.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from ..core.ledger_types import (
    ALL_STATIONS,
    ALL_TYPES,
    ALL_UNITS,
    DISPOSITION_ISSUED,
    DISPOSITION_ONHAND,
    PRIORITY_HEAD,
    PRIORITY_TAIL,
    PROVINCE_ORDER,
    STATUS_BER,
    STATUS_SERVICEABLE,
    STATUS_UNSERVICEABLE,
    TYPE_CONFIG,
    TYPE_PARENT_CHOICES,
    normalize_token,
)
from ..schemas.inventory import InventoryRecord

# (spellings, field, exact value); checked in order, first prefix match wins.
SEARCH_KEYWORDS: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("issued",), "disposition", DISPOSITION_ISSUED),
    (("onhand", "on hand"), "disposition", DISPOSITION_ONHAND),
    (("serviceable",), "status", STATUS_SERVICEABLE),
    (("unserviceable",), "status", STATUS_UNSERVICEABLE),
    (("ber",), "status", STATUS_BER),
)

SEARCH_FIELDS = (
    "unit",
    "station",
    "serial_number",
    "make_child",
    "model",
    "name",
    "disposition",
    "type_child",
)

HEAD_RANK = -1
OTHER_RANK = len(PROVINCE_ORDER)
TAIL_RANK = OTHER_RANK + 1


@dataclass(frozen=True)
class ViewState:
    unit: str = ALL_UNITS
    station: str = ALL_STATIONS
    type_parent: str = ALL_TYPES
    type_child: str = ALL_TYPES
    search: str = ""
    page: int = 1

    def with_filters(self, **changes: str) -> "ViewState":
        """Apply filter changes; any change sends the view back to page 1."""

        unknown = set(changes) - {"unit", "station", "type_parent", "type_child", "search"}
        if unknown:
            raise TypeError(f"Unknown filters: {', '.join(sorted(unknown))}")
        updated = replace(self, **changes)
        if updated.type_parent == ALL_TYPES:
            updated = replace(updated, type_child=ALL_TYPES)
        if updated != self:
            updated = replace(updated, page=1)
        return updated

    def with_page(self, page: int) -> "ViewState":
        return replace(self, page=page)


@dataclass(frozen=True)
class PageView:
    rows: tuple[InventoryRecord, ...]
    items: tuple[InventoryRecord, ...]
    page: int
    page_size: int
    total_pages: int

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def unit_priority(unit: str | None) -> int:
    upper = (unit or "").upper()
    if PRIORITY_HEAD in upper:
        return HEAD_RANK
    if PRIORITY_TAIL in upper:
        return TAIL_RANK
    for index, province in enumerate(PROVINCE_ORDER):
        if province in upper:
            return index
    return OTHER_RANK


def record_sort_key(record: InventoryRecord) -> tuple[int, str, str]:
    return (unit_priority(record.unit), record.unit, record.station)


def sort_units(units: Iterable[str]) -> list[str]:
    return sorted(units, key=lambda unit: (unit_priority(unit), unit))


def sort_records(records: Iterable[InventoryRecord]) -> list[InventoryRecord]:
    return sorted(records, key=record_sort_key)


def keyword_filter(query: str) -> tuple[str, str] | None:
    """Return ``(field, value)`` when ``query`` abbreviates a search keyword."""

    q = normalize_token(query)
    if not q:
        return None
    for spellings, field_name, value in SEARCH_KEYWORDS:
        if any(spelling.startswith(q) for spelling in spellings):
            return field_name, value
    return None


def matches_search(record: InventoryRecord, query: str) -> bool:
    q = normalize_token(query)
    if not q:
        return True
    keyword = keyword_filter(q)
    if keyword is not None:
        field_name, value = keyword
        return getattr(record, field_name) == value
    haystack = " ".join(str(getattr(record, name) or "") for name in SEARCH_FIELDS).lower()
    return q in haystack


def matches_view(record: InventoryRecord, view: ViewState) -> bool:
    if view.unit != ALL_UNITS and record.unit != view.unit:
        return False
    if view.station != ALL_STATIONS and record.station != view.station:
        return False
    if view.type_parent != ALL_TYPES:
        if record.type_parent != view.type_parent:
            return False
        if view.type_child != ALL_TYPES and record.type_child != view.type_child:
            return False
    return matches_search(record, view.search)


def filter_records(records: Iterable[InventoryRecord], view: ViewState) -> list[InventoryRecord]:
    return sort_records(record for record in records if matches_view(record, view))


def paginate(rows: Sequence[InventoryRecord], page: int, page_size: int) -> PageView:
    if page_size < 1:
        raise ValueError("page_size must be positive")
    total_pages = max(1, math.ceil(len(rows) / page_size))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    return PageView(
        rows=tuple(rows),
        items=tuple(rows[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


def build_view(records: Iterable[InventoryRecord], view: ViewState, page_size: int) -> PageView:
    return paginate(filter_records(records, view), view.page, page_size)


def unit_options(records: Iterable[InventoryRecord]) -> list[str]:
    return [ALL_UNITS, *sort_units({record.unit for record in records})]


def station_options(records: Iterable[InventoryRecord], unit: str = ALL_UNITS) -> list[str]:
    stations: list[str] = []
    for record in records:
        if unit != ALL_UNITS and record.unit != unit:
            continue
        if record.station not in stations:
            stations.append(record.station)
    return [ALL_STATIONS, *stations]


def type_parent_options() -> list[str]:
    return [ALL_TYPES, *TYPE_PARENT_CHOICES]


def type_child_options(records: Iterable[InventoryRecord], parent: str) -> list[str]:
    """Children offered once a parent is picked; empty while the parent is "All"."""

    if parent == ALL_TYPES:
        return []
    children = list(TYPE_CONFIG.get(parent, ()))
    for record in records:
        if record.type_parent == parent and record.type_child and record.type_child not in children:
            children.append(record.type_child)
    return [ALL_TYPES, *children]


__all__ = [
    "PageView",
    "SEARCH_FIELDS",
    "SEARCH_KEYWORDS",
    "ViewState",
    "build_view",
    "filter_records",
    "keyword_filter",
    "matches_search",
    "matches_view",
    "paginate",
    "record_sort_key",
    "sort_records",
    "sort_units",
    "station_options",
    "type_child_options",
    "type_parent_options",
    "unit_options",
    "unit_priority",
]
