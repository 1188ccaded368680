"""CSV export of the rows currently visible in the ledger.

Every cell is JSON-string encoded so spreadsheet tools quote dates and serial
numbers consistently instead of reformatting them.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Iterable

from ..schemas.inventory import InventoryRecord

# Mirrors the on-screen table, left to right.
EXPORT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("UNIT", "unit"),
    ("STATION", "station"),
    ("SERIAL NO.", "serial_number"),
    ("TYPE", "type_child"),
    ("MAKE", "make_child"),
    ("MODEL", "model"),
    ("NAME", "name"),
    ("STATUS", "status"),
    ("DISPOSITION", "disposition"),
    ("SOURCE", "source"),
    ("USER OFFICE", "user_office"),
    ("ISSUANCE", "issuance_type"),
    ("VALIDATED", "validated"),
    ("VALIDATED AT", "validated_at"),
)


def _cell(value: Any) -> str:
    if value is None:
        return '""'
    if isinstance(value, bool):
        value = "YES" if value else "NO"
    return json.dumps(str(value))


def export_csv(records: Iterable[InventoryRecord]) -> str:
    lines = [",".join(header for header, _ in EXPORT_COLUMNS)]
    for record in records:
        lines.append(",".join(_cell(getattr(record, attr)) for _, attr in EXPORT_COLUMNS))
    return "\n".join(lines)


def export_filename(today: date | None = None) -> str:
    return f"quicklook-inventory-{(today or date.today()).isoformat()}.csv"


__all__ = ["EXPORT_COLUMNS", "export_csv", "export_filename"]
