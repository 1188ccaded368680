"""Conversion boundary between store rows and ``InventoryRecord``.

Rows arrive with store codes (``svc``, ``onhand`` ...) and, for older data,
alternate column spellings. Everything entering or leaving the ledger passes
through ``record_from_row`` / ``fields_to_row`` so nothing untyped leaks past
this module.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ValidationError
from ..core.ledger_types import (
    DISPOSITION_FROM_CODE,
    DISPOSITION_TO_CODE,
    ISSUANCE_FROM_CODE,
    ISSUANCE_TO_CODE,
    SOURCE_CHOICES,
    STATUS_FROM_CODE,
    STATUS_TO_CODE,
    infer_type_parent,
    match_type_parent,
)
from ..schemas.inventory import EDITABLE_FIELDS, InventoryRecord

logger = logging.getLogger(__name__)

# Legacy spellings seen in exported views, first match wins.
_ALIASES: dict[str, tuple[str, ...]] = {
    "unit": ("unit", "sector", "ppo"),
    "serial_number": ("serial_number", "serial_no", "serialNo", "serialno"),
    "name": ("name", "equipment"),
    "issuance_type": ("issuance_type", "issuance"),
    "validated_at": ("validated_at", "validatedAt"),
    "user_office": ("user_office", "userOffice"),
    "acquisition_date": ("acquisition_date", "acquisitionDate"),
    "acquisition_cost": ("acquisition_cost", "acquisitionCost"),
    "cost_of_repair": ("cost_of_repair", "costOfRepair"),
    "created_at": ("created_at", "createdAt", "createdat"),
}

_WRITABLE = set(EDITABLE_FIELDS) | {"validated", "validated_at"}


def _pick(row: Mapping[str, Any], key: str) -> Any:
    for candidate in _ALIASES.get(key, (key,)):
        value = row.get(candidate)
        if value is not None:
            return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _decode(value: Any, table: Mapping[str, str], column: str) -> str:
    raw = _text(value)
    if not raw:
        return ""
    if raw.lower() in table:
        return table[raw.lower()]
    if raw.upper() in table.values():
        return raw.upper()
    raise ValidationError(f"Unrecognized {column} value {raw!r} in store row")


def _encode(value: Any, table: Mapping[str, str], column: str) -> str | None:
    raw = _text(value)
    if not raw:
        return None
    if raw not in table:
        raise ValidationError(f"Unknown {column} {raw!r}; expected one of {', '.join(table)}")
    return table[raw]


def _number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def record_from_row(row: Mapping[str, Any]) -> InventoryRecord:
    """Build a record from a raw store row, rejecting malformed shapes."""

    if not isinstance(row, Mapping):
        raise ValidationError(f"Store row must be a mapping, got {type(row).__name__}")
    record_id = row.get("id")
    if record_id is None or _text(record_id) == "":
        raise ValidationError("Store row has no id")

    name = _text(_pick(row, "name"))
    legacy_type = _text(row.get("type"))
    type_child = _text(row.get("type_child")) or legacy_type
    type_parent = match_type_parent(row.get("type_parent")) or infer_type_parent(type_child, name)
    make_parent = match_type_parent(row.get("make_parent")) or type_parent
    make_child = _text(row.get("make_child")) or _text(row.get("make"))

    validated = bool(row.get("validated") or False)
    validated_at = _text(_pick(row, "validated_at")) or None
    if not validated:
        validated_at = None
    elif not validated_at:
        raise ValidationError(f"Row {record_id} is validated but carries no validation time")

    payload = {
        "id": _text(record_id),
        "unit": _text(_pick(row, "unit")),
        "station": _text(row.get("station")),
        "serial_number": _text(_pick(row, "serial_number")),
        "type_parent": type_parent,
        "type_child": type_child.upper(),
        "make_parent": make_parent,
        "make_child": make_child.upper(),
        "model": _text(row.get("model")) or legacy_type,
        "name": name,
        "status": _decode(row.get("status"), STATUS_FROM_CODE, "status"),
        "disposition": _decode(row.get("disposition"), DISPOSITION_FROM_CODE, "disposition"),
        "issuance_type": _decode(_pick(row, "issuance_type"), ISSUANCE_FROM_CODE, "issuance"),
        "validated": validated,
        "validated_at": validated_at,
        "source": _text(row.get("source")).lower(),
        "user_office": _text(_pick(row, "user_office")),
        "acquisition_date": _text(_pick(row, "acquisition_date")) or None,
        "acquisition_cost": _number(_pick(row, "acquisition_cost")),
        "cost_of_repair": _number(_pick(row, "cost_of_repair")),
        "created_at": _text(_pick(row, "created_at")) or None,
    }
    try:
        return InventoryRecord(**payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Store row {record_id} does not match the record shape: {exc}") from exc


def records_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[InventoryRecord]:
    """Decode a fetched batch, dropping rows that fail the boundary check."""

    records: list[InventoryRecord] = []
    for row in rows:
        try:
            records.append(record_from_row(row))
        except ValidationError as exc:
            logger.warning("store.row_rejected", extra={"extra_data": {"reason": str(exc)}})
    return records


def fields_to_row(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Translate record attribute changes into a store update payload."""

    row: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in _WRITABLE:
            raise ValidationError(f"Field {key!r} cannot be written")
        if key == "status":
            row[key] = _encode(value, STATUS_TO_CODE, "status")
        elif key == "disposition":
            row[key] = _encode(value, DISPOSITION_TO_CODE, "disposition")
        elif key == "issuance_type":
            row[key] = _encode(value, ISSUANCE_TO_CODE, "issuance type")
        elif key == "source":
            source = _text(value).lower()
            if source and source not in SOURCE_CHOICES:
                raise ValidationError(f"Unknown source {value!r}")
            row[key] = source or None
        elif key in ("type_parent", "make_parent"):
            parent = match_type_parent(value)
            if parent is None:
                raise ValidationError(f"Unknown {key.replace('_', ' ')} {value!r}")
            row[key] = parent
        elif key == "validated":
            row[key] = bool(value)
        else:
            row[key] = value
    return row


__all__ = ["fields_to_row", "record_from_row", "records_from_rows"]
