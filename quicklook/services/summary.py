from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Iterable

from ..core.ledger_types import (
    DISPOSITION_FOR_DISPOSAL,
    ISSUANCE_NOT_ISSUED,
    STATUS_FOR_REPAIR,
    STATUS_SERVICEABLE,
    STATUS_UNSERVICEABLE,
)
from ..schemas.inventory import InventoryRecord

EMPTY_LABEL = "(blank)"


def summarize(records: Iterable[InventoryRecord]) -> dict[str, Any]:
    """Column totals shown above the ledger for the currently filtered rows."""

    rows = list(records)
    status_counts = Counter(r.status or EMPTY_LABEL for r in rows)
    issuance_counts = Counter(r.issuance_type or EMPTY_LABEL for r in rows)

    validated_yes = sum(1 for r in rows if r.validated)
    validated_no = len(rows) - validated_yes
    rate = round(validated_yes / len(rows) * 100) if rows else 0

    matrix: dict[str, dict[str, int]] = defaultdict(dict)
    for r in rows:
        status = r.status or EMPTY_LABEL
        issuance = r.issuance_type or EMPTY_LABEL
        matrix[status][issuance] = matrix[status].get(issuance, 0) + 1

    return {
        "total_rows": len(rows),
        "status": dict(status_counts),
        "issuance": dict(issuance_counts),
        "validated": {"yes": validated_yes, "no": validated_no, "rate": rate},
        "attention": {
            "unserviceable": status_counts.get(STATUS_UNSERVICEABLE, 0),
            "for_repair": status_counts.get(STATUS_FOR_REPAIR, 0),
            "for_disposal": sum(1 for r in rows if r.disposition == DISPOSITION_FOR_DISPOSAL),
            "idle_serviceable": sum(
                1 for r in rows if r.status == STATUS_SERVICEABLE and r.issuance_type == ISSUANCE_NOT_ISSUED
            ),
        },
        "matrix": dict(matrix),
    }
