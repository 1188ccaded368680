"""Bulk CSV import for the ledger.

The file is rejected as a whole when its header lacks a required column. Past
that point the import is forgiving: enumerated values are matched through
alias tables that absorb common spellings, and a value that matches nothing
is left out of the row's payload (with a warning) instead of failing the
file, so whatever default the store applies takes over.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping

from ..core.clock import utc_timestamp
from ..core.exceptions import ImportFormatError, PersistenceFailure
from ..core.ledger_types import match_type_parent, normalize_token
from ..schemas.inventory import InventoryRecord
from ..store.base import InventoryStore
from .state import InventoryState, RecordCache

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = (
    "type_parent",
    "type_child",
    "make_parent",
    "make_child",
    "serial_number",
    "model",
    "name",
    "status",
    "disposition",
    "issuance_type",
    "validated",
)

IMPORT_ACTION = "CSV_IMPORT"

STATUS_ALIASES = {
    "svc": "svc",
    "serviceable": "svc",
    "uns": "uns",
    "unsvc": "uns",
    "unserviceable": "uns",
    "rep": "rep",
    "repair": "rep",
    "for repair": "rep",
    "forrepair": "rep",
    "ber": "ber",
    "beyondrepair": "ber",
    "beyond repair": "ber",
}

SOURCE_ALIASES = {
    "organic": "organic",
    "procured": "organic",
    "donated": "donated",
    "donation": "donated",
    "loaned": "loaned",
    "loan": "loaned",
    "fas": "fas",
}

DISPOSITION_ALIASES = {
    "assigned": "assigned",
    "for repair": "repair",
    "repair": "repair",
    "forrepair": "repair",
    "for disposal": "disposal",
    "disposal": "disposal",
    "fordisposal": "disposal",
    "stock": "stock",
    "in stock": "stock",
    "onhand": "onhand",
    "issued": "issued",
    # common CSV mistakes
    "on hand": "onhand",
    "on-hand": "onhand",
    "no": "onhand",
    "issue": "issued",
    "issuedto": "issued",
    "issued to": "issued",
    "yes": "issued",
}

ISSUANCE_ALIASES = {
    "issued": "issued",
    "not issued": "not_issued",
    "not_issued": "not_issued",
    # common CSV mistakes
    "not-issued": "not_issued",
    "notissued": "not_issued",
    "issue": "issued",
    "yes": "issued",
    "assigned": "issued",
    "no": "not_issued",
    "onhand": "not_issued",
    "on hand": "not_issued",
}

TRUE_WORDS = {"true", "yes", "y", "1", "validated"}
FALSE_WORDS = {"false", "no", "n", "0", ""}

# column -> (payload key, alias table)
ENUM_COLUMNS: dict[str, tuple[str, Mapping[str, str]]] = {
    "status": ("status", STATUS_ALIASES),
    "source": ("source", SOURCE_ALIASES),
    "disposition": ("disposition", DISPOSITION_ALIASES),
    "issuance_type": ("issuance_type", ISSUANCE_ALIASES),
}

TEXT_COLUMNS = ("serial_number", "model", "name", "user_office")
UPPER_COLUMNS = ("type_child", "make_child")
PARENT_COLUMNS = ("type_parent", "make_parent")
NUMBER_COLUMNS = ("acquisition_cost", "cost_of_repair")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")


@dataclass(frozen=True)
class ImportRowWarning:
    """A value the normalizer could not place; the field was left out."""

    row: int
    column: str
    value: str


@dataclass
class NormalizedRow:
    line: int
    payload: dict[str, Any]
    warnings: list[ImportRowWarning] = field(default_factory=list)


@dataclass(frozen=True)
class ImportResult:
    state: InventoryState
    inserted: tuple[InventoryRecord, ...] = ()
    warnings: tuple[ImportRowWarning, ...] = ()


def normalize_csv_date(value: Any) -> str:
    """Return ``YYYY-MM-DD`` or ``""`` when the value is not a usable date.

    Accepts ISO dates and ``DD/MM/YY`` / ``DD/MM/YYYY``; two-digit years below
    50 land in the 2000s, the rest in the 1900s.
    """

    raw = str(value if value is not None else "").strip()
    if not raw:
        return ""

    iso = _ISO_DATE.match(raw)
    slash = _SLASH_DATE.match(raw)
    if iso:
        year, month, day = (int(part) for part in iso.groups())
    elif slash:
        day_text, month_text, year_text = slash.groups()
        year = int(year_text)
        if len(year_text) == 2:
            year += 2000 if year < 50 else 1900
        day, month = int(day_text), int(month_text)
    else:
        return ""

    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return ""


def _to_number(value: str) -> float | None:
    cleaned = value.strip().replace("$", "").replace(",", "")
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    # NaN and Infinity parse as decimals but are not costs.
    if not number.is_finite():
        return None
    return float(number)


def check_header(header: Iterable[str]) -> None:
    present = set(header)
    missing = [name for name in REQUIRED_HEADERS if name not in present]
    if missing:
        raise ImportFormatError(missing)


def parse_csv_text(text: str) -> tuple[list[str], list[tuple[int, dict[str, str]]]]:
    """Split CSV text into its header and ``(line, row)`` pairs.

    The header is checked before any data row is read. Quoted fields may hold
    commas and ``""`` escapes; rows with no data are skipped.
    """

    stream = io.StringIO(text.lstrip("\ufeff"), newline="")
    reader = csv.reader(stream)
    header_row = next(reader, None)
    if not header_row:
        raise ImportFormatError(REQUIRED_HEADERS)
    header = [name.strip() for name in header_row]
    check_header(header)

    rows: list[tuple[int, dict[str, str]]] = []
    for values in reader:
        if not any(value.strip() for value in values):
            continue
        row = {name: (values[idx] if idx < len(values) else "") for idx, name in enumerate(header)}
        rows.append((reader.line_num, row))
    return header, rows


def normalize_row(
    row: Mapping[str, str],
    *,
    line: int = 0,
    unit: str = "",
    station: str = "",
    now: str | None = None,
) -> NormalizedRow:
    """Map one loosely typed CSV row onto a store payload."""

    result = NormalizedRow(line=line, payload={})
    payload = result.payload

    def text(column: str) -> str:
        return str(row.get(column) or "").strip()

    def warn(column: str) -> None:
        result.warnings.append(ImportRowWarning(row=line, column=column, value=text(column)))

    payload["unit"] = text("unit") or text("sector") or unit
    payload["station"] = text("station") or station

    for column in TEXT_COLUMNS:
        if column in row:
            payload[column] = text(column)
    for column in UPPER_COLUMNS:
        if column in row:
            payload[column] = text(column).upper()

    for column in PARENT_COLUMNS:
        raw = text(column)
        if not raw:
            continue
        parent = match_type_parent(raw)
        if parent is None:
            warn(column)
        else:
            payload[column] = parent

    for column, (key, aliases) in ENUM_COLUMNS.items():
        raw = normalize_token(row.get(column))
        if not raw:
            continue
        canonical = aliases.get(raw)
        if canonical is None:
            warn(column)
        else:
            payload[key] = canonical

    validated_raw = normalize_token(row.get("validated"))
    if validated_raw in TRUE_WORDS:
        payload["validated"] = True
        payload["validated_at"] = now or utc_timestamp()
    elif validated_raw in FALSE_WORDS:
        payload["validated"] = False
        payload["validated_at"] = None
    else:
        warn("validated")

    if "acquisition_date" in row:
        payload["acquisition_date"] = normalize_csv_date(row.get("acquisition_date")) or None

    for column in NUMBER_COLUMNS:
        raw = text(column)
        if not raw:
            continue
        number = _to_number(raw)
        if number is None:
            warn(column)
        else:
            payload[column] = number

    return result


async def import_csv(
    text: str,
    store: InventoryStore,
    cache: RecordCache,
    *,
    unit: str = "",
    station: str = "",
    department: str | None = None,
    clock: Callable[[], str] = utc_timestamp,
) -> ImportResult:
    """Insert every row of ``text`` and put the new records at the front of the cache."""

    _, rows = parse_csv_text(text)
    if not rows:
        return ImportResult(state=cache.state)

    now = clock()
    normalized = [normalize_row(row, line=line, unit=unit, station=station, now=now) for line, row in rows]
    warnings = tuple(w for item in normalized for w in item.warnings)
    for warning in warnings:
        logger.warning(
            "import.value_dropped",
            extra={"extra_data": {"row": warning.row, "column": warning.column, "value": warning.value}},
        )

    inserted = await store.insert_batch([item.payload for item in normalized])
    if not inserted:
        raise PersistenceFailure("insert", "No rows were inserted")

    try:
        await store.log_activity(
            [
                {
                    "unit": record.unit,
                    "station": record.station,
                    "inventory_id": record.id,
                    "action": IMPORT_ACTION,
                    "performed_department": department or "Unknown",
                    "snapshot": record.model_dump(),
                }
                for record in inserted
            ]
        )
    except PersistenceFailure as exc:
        # The rows are already in; a missing audit entry does not undo them.
        logger.warning("import.activity_log_failed", extra={"extra_data": {"reason": exc.message}})

    state = cache.set(cache.state.prepend(inserted))
    logger.info(
        "import.completed",
        extra={"extra_data": {"inserted": len(inserted), "warnings": len(warnings)}},
    )
    return ImportResult(state=state, inserted=tuple(inserted), warnings=warnings)


__all__ = [
    "DISPOSITION_ALIASES",
    "ISSUANCE_ALIASES",
    "ImportResult",
    "ImportRowWarning",
    "NormalizedRow",
    "REQUIRED_HEADERS",
    "SOURCE_ALIASES",
    "STATUS_ALIASES",
    "check_header",
    "import_csv",
    "normalize_csv_date",
    "normalize_row",
    "parse_csv_text",
]
