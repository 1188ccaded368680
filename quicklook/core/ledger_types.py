"""Shared enumerations and code tables for the quicklook equipment ledger.

Display values (``SERVICEABLE``, ``FOR REPAIR`` ...) are what the ledger shows
and what the derivation rules speak. The store keeps short lower-case codes;
the tables below are the only place the two vocabularies meet.
"""

from __future__ import annotations

STATUS_SERVICEABLE = "SERVICEABLE"
STATUS_UNSERVICEABLE = "UNSERVICEABLE"
STATUS_FOR_REPAIR = "FOR REPAIR"
# Legacy value still present in older rows; never produced by derivation.
STATUS_BER = "BER"

STATUS_CHOICES = (STATUS_SERVICEABLE, STATUS_UNSERVICEABLE, STATUS_FOR_REPAIR)

DISPOSITION_ASSIGNED = "ASSIGNED"
DISPOSITION_FOR_REPAIR = "FOR REPAIR"
DISPOSITION_FOR_DISPOSAL = "FOR DISPOSAL"
DISPOSITION_STOCK = "STOCK"
DISPOSITION_ONHAND = "ONHAND"
DISPOSITION_ISSUED = "ISSUED"

DISPOSITION_CHOICES = (
    DISPOSITION_ASSIGNED,
    DISPOSITION_FOR_REPAIR,
    DISPOSITION_FOR_DISPOSAL,
    DISPOSITION_STOCK,
)

ISSUANCE_ISSUED = "ISSUED"
ISSUANCE_NOT_ISSUED = "NOT ISSUED"

ISSUANCE_CHOICES = (ISSUANCE_ISSUED, ISSUANCE_NOT_ISSUED)

SOURCE_CHOICES = ("organic", "donated", "loaned", "fas")

TYPE_LONG_FAS = "Long FAS"
TYPE_SHORT_FAS = "Short FAS"
TYPE_OTHER = "Other Equipment"

# Parent categories only group free-text children into filter menus.
TYPE_CONFIG: dict[str, tuple[str, ...]] = {
    TYPE_LONG_FAS: ("RIFLE", "SHOTGUN", "CARBINE", "GALIL", "M4A1"),
    TYPE_SHORT_FAS: ("PISTOL", "REVOLVER", "BERETTA"),
    TYPE_OTHER: ("OTHER",),
}

TYPE_PARENT_CHOICES = tuple(TYPE_CONFIG)

_SHORT_FAS_HINTS = ("PISTOL", "REVOLVER", "BERETTA")
_LONG_FAS_HINTS = ("RIFLE", "SHOTGUN", "CARBINE", "GALIL", "M4")

STATUS_TO_CODE = {
    STATUS_SERVICEABLE: "svc",
    STATUS_UNSERVICEABLE: "uns",
    STATUS_FOR_REPAIR: "rep",
    STATUS_BER: "ber",
}
STATUS_FROM_CODE = {code: label for label, code in STATUS_TO_CODE.items()}

DISPOSITION_TO_CODE = {
    DISPOSITION_ASSIGNED: "assigned",
    DISPOSITION_FOR_REPAIR: "repair",
    DISPOSITION_FOR_DISPOSAL: "disposal",
    DISPOSITION_STOCK: "stock",
    DISPOSITION_ONHAND: "onhand",
    DISPOSITION_ISSUED: "issued",
}
DISPOSITION_FROM_CODE = {code: label for label, code in DISPOSITION_TO_CODE.items()}

ISSUANCE_TO_CODE = {
    ISSUANCE_ISSUED: "issued",
    ISSUANCE_NOT_ISSUED: "not_issued",
}
ISSUANCE_FROM_CODE = {code: label for label, code in ISSUANCE_TO_CODE.items()}

# Unit ordering for the ledger: RHQ first, the provinces in this order, the
# mobile force last and everything else in between.
PRIORITY_HEAD = "RHQ"
PROVINCE_ORDER = ("CAVITE", "LAGUNA", "BATANGAS", "RIZAL", "QUEZON")
PRIORITY_TAIL = "RMFB4A"

ALL_UNITS = "All Units"
ALL_STATIONS = "All Stations"
ALL_TYPES = "All"


def normalize_token(value: object) -> str:
    """Lower-case and collapse whitespace so alias lookups ignore spacing."""

    return " ".join(str(value if value is not None else "").split()).lower()


def infer_type_parent(type_text: str | None, name: str | None = None) -> str:
    """Guess the parent category for a row that was stored without one."""

    haystack = f"{type_text or ''} {name or ''}".upper()
    if any(hint in haystack for hint in _SHORT_FAS_HINTS):
        return TYPE_SHORT_FAS
    if any(hint in haystack for hint in _LONG_FAS_HINTS):
        return TYPE_LONG_FAS
    return TYPE_OTHER


def match_type_parent(value: str | None) -> str | None:
    """Return the canonical parent category for ``value`` (case-insensitive)."""

    wanted = normalize_token(value)
    if not wanted:
        return None
    for parent in TYPE_PARENT_CHOICES:
        if parent.lower() == wanted:
            return parent
    return None


__all__ = [
    "ALL_STATIONS",
    "ALL_TYPES",
    "ALL_UNITS",
    "DISPOSITION_ASSIGNED",
    "DISPOSITION_CHOICES",
    "DISPOSITION_FOR_DISPOSAL",
    "DISPOSITION_FOR_REPAIR",
    "DISPOSITION_FROM_CODE",
    "DISPOSITION_ISSUED",
    "DISPOSITION_ONHAND",
    "DISPOSITION_STOCK",
    "DISPOSITION_TO_CODE",
    "ISSUANCE_CHOICES",
    "ISSUANCE_FROM_CODE",
    "ISSUANCE_ISSUED",
    "ISSUANCE_NOT_ISSUED",
    "ISSUANCE_TO_CODE",
    "PRIORITY_HEAD",
    "PRIORITY_TAIL",
    "PROVINCE_ORDER",
    "SOURCE_CHOICES",
    "STATUS_BER",
    "STATUS_CHOICES",
    "STATUS_FOR_REPAIR",
    "STATUS_FROM_CODE",
    "STATUS_SERVICEABLE",
    "STATUS_TO_CODE",
    "STATUS_UNSERVICEABLE",
    "TYPE_CONFIG",
    "TYPE_LONG_FAS",
    "TYPE_OTHER",
    "TYPE_PARENT_CHOICES",
    "TYPE_SHORT_FAS",
    "infer_type_parent",
    "match_type_parent",
    "normalize_token",
]
