"""Pydantic shapes for ledger records and the API payloads built on them."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.ledger_types import TYPE_OTHER

# Attributes an inline edit or edit-form submission may touch. ``validated``
# and ``validated_at`` are reachable only through the validation gate.
EDITABLE_FIELDS = (
    "unit",
    "station",
    "serial_number",
    "type_parent",
    "type_child",
    "make_parent",
    "make_child",
    "model",
    "name",
    "status",
    "disposition",
    "issuance_type",
    "source",
    "user_office",
)


class InventoryRecord(BaseModel):
    """One physical asset as the ledger displays it.

    Instances are frozen: every change produces a new record through
    ``model_copy(update=...)`` so earlier states stay intact for rollback.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    unit: str = ""
    station: str = ""
    serial_number: str = ""
    type_parent: str = TYPE_OTHER
    type_child: str = ""
    make_parent: str = TYPE_OTHER
    make_child: str = ""
    model: str = ""
    name: str = ""
    status: str = ""
    disposition: str = ""
    issuance_type: str = ""
    validated: bool = False
    validated_at: Optional[str] = None
    source: str = ""
    user_office: str = ""
    acquisition_date: Optional[str] = None
    acquisition_cost: Optional[float] = None
    cost_of_repair: Optional[float] = None
    created_at: Optional[str] = None

    @model_validator(mode="after")
    def check_validation_stamp(self) -> "InventoryRecord":
        if self.validated and not self.validated_at:
            raise ValueError("validated_at is required when validated is true")
        if not self.validated and self.validated_at:
            raise ValueError("validated_at must be empty when validated is false")
        return self


class InlineEditRequest(BaseModel):
    field: str = Field(min_length=1)
    value: str

    model_config = {
        "json_schema_extra": {"example": {"field": "status", "value": "UNSERVICEABLE"}}
    }


class RecordUpdate(BaseModel):
    """Full edit-form submission; unset fields are left alone."""

    unit: Optional[str] = None
    station: Optional[str] = None
    serial_number: Optional[str] = None
    type_parent: Optional[str] = None
    type_child: Optional[str] = None
    make_parent: Optional[str] = None
    make_child: Optional[str] = None
    model: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    disposition: Optional[str] = None
    issuance_type: Optional[str] = None
    source: Optional[str] = None
    user_office: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ValidationRequest(BaseModel):
    department: str = Field(min_length=1)


class DerivePreviewRequest(BaseModel):
    field: str
    value: str
    form: dict[str, Any] = Field(default_factory=dict)


class AccessDecisionOut(BaseModel):
    allowed: bool
    reason: str
    department: str


class RecordTotals(BaseModel):
    total_rows: int
    status: dict[str, int]
    issuance: dict[str, int]
    validated: dict[str, int]
    attention: dict[str, int]
    matrix: dict[str, dict[str, int]]


class FilterOptions(BaseModel):
    units: list[str]
    stations: list[str]
    type_parents: list[str]
    type_children: list[str]


class RecordPage(BaseModel):
    items: list[InventoryRecord]
    page: int
    page_size: int
    total_pages: int
    total_rows: int
    totals: RecordTotals
    options: FilterOptions
    can_validate: bool = False


class ImportWarningOut(BaseModel):
    row: int
    column: str
    value: str


class ImportResultOut(BaseModel):
    inserted: int
    items: list[InventoryRecord]
    warnings: list[ImportWarningOut]
