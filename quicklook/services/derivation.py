"""Dependent-field rules for status and disposition changes.

Two entry points exist on purpose and must not be merged:

* ``derive_by_status`` is the correction applied whenever a record's status is
  set. It overwrites disposition and issuance type, except that an
  UNSERVICEABLE item already marked FOR REPAIR keeps that disposition.
* ``apply_smart_defaults`` pre-fills the edit form. It only fills fields the
  user has left empty and never replaces an explicit choice.

Both are pure and reject values outside the enumerations.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..core.exceptions import ValidationError
from ..core.ledger_types import (
    DISPOSITION_ASSIGNED,
    DISPOSITION_CHOICES,
    DISPOSITION_FOR_DISPOSAL,
    DISPOSITION_FOR_REPAIR,
    ISSUANCE_ISSUED,
    ISSUANCE_NOT_ISSUED,
    STATUS_CHOICES,
    STATUS_FOR_REPAIR,
    STATUS_SERVICEABLE,
    STATUS_UNSERVICEABLE,
)

SMART_DEFAULT_FIELDS = ("status", "disposition")

# Issuance implied by a disposition choice. STOCK implies nothing.
_ISSUANCE_FOR_DISPOSITION = {
    DISPOSITION_ASSIGNED: ISSUANCE_ISSUED,
    DISPOSITION_FOR_REPAIR: ISSUANCE_NOT_ISSUED,
    DISPOSITION_FOR_DISPOSAL: ISSUANCE_NOT_ISSUED,
}

# What a fresh form gets when the user picks a status first.
_FORM_DEFAULTS_FOR_STATUS = {
    STATUS_SERVICEABLE: (DISPOSITION_ASSIGNED, ISSUANCE_ISSUED),
    STATUS_UNSERVICEABLE: (DISPOSITION_FOR_REPAIR, ISSUANCE_NOT_ISSUED),
    STATUS_FOR_REPAIR: (DISPOSITION_FOR_REPAIR, ISSUANCE_NOT_ISSUED),
}


def _current_value(current: Any, key: str) -> Any:
    if current is None:
        return None
    if isinstance(current, Mapping):
        return current.get(key)
    return getattr(current, key, None)


def require_status(value: Any) -> str:
    if value not in STATUS_CHOICES:
        raise ValidationError(f"Unknown status {value!r}; expected one of {', '.join(STATUS_CHOICES)}")
    return value


def require_disposition(value: Any) -> str:
    if value not in DISPOSITION_CHOICES:
        raise ValidationError(
            f"Unknown disposition {value!r}; expected one of {', '.join(DISPOSITION_CHOICES)}"
        )
    return value


def derive_by_status(current: Any, new_status: str) -> dict[str, str]:
    """Return the full ``status``/``disposition``/``issuance_type`` triple.

    ``current`` may be a record or a mapping; only its ``disposition`` is read.
    """

    status = require_status(new_status)

    if status == STATUS_UNSERVICEABLE:
        if _current_value(current, "disposition") == DISPOSITION_FOR_REPAIR:
            disposition = DISPOSITION_FOR_REPAIR
        else:
            disposition = DISPOSITION_FOR_DISPOSAL
        issuance = ISSUANCE_NOT_ISSUED
    elif status == STATUS_FOR_REPAIR:
        disposition = DISPOSITION_FOR_REPAIR
        issuance = ISSUANCE_NOT_ISSUED
    else:
        disposition = DISPOSITION_ASSIGNED
        issuance = ISSUANCE_ISSUED

    return {"status": status, "disposition": disposition, "issuance_type": issuance}


def apply_smart_defaults(form: Mapping[str, Any] | None, field: str, value: str) -> dict[str, Any]:
    """Return a copy of ``form`` with ``field`` set and empty dependents filled."""

    updated: dict[str, Any] = dict(form or {})

    if field == "status":
        require_status(value)
        updated["status"] = value
        disposition, issuance = _FORM_DEFAULTS_FOR_STATUS[value]
        if not updated.get("disposition"):
            updated["disposition"] = disposition
        if not updated.get("issuance_type"):
            updated["issuance_type"] = issuance
        return updated

    if field == "disposition":
        require_disposition(value)
        updated["disposition"] = value
        implied = _ISSUANCE_FOR_DISPOSITION.get(value)
        if implied and not updated.get("issuance_type"):
            updated["issuance_type"] = implied
        return updated

    raise ValidationError(f"Smart defaults apply to status or disposition, not {field!r}")


__all__ = [
    "SMART_DEFAULT_FIELDS",
    "apply_smart_defaults",
    "derive_by_status",
    "require_disposition",
    "require_status",
]
