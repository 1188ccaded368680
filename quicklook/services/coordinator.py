"""Optimistic edits: stage, show, persist, then keep or revert.

Every mutation runs as one sequence on the caller's task:

1. stage the field values (status edits pull in the derived fields),
2. publish them to the ``RecordCache`` so the change is visible at once,
3. await the store,
4. keep the optimistic values on success, or put back the exact previous
   values of the staged fields on failure.

The outcome is an ``EditResult`` rather than an exception so the revert path
is an ordinary branch callers can inspect. Overlapping edits that touch a
record field still in flight are refused with ``EditConflict`` before
anything is staged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ..core.clock import utc_timestamp
from ..core.exceptions import EditConflict, PersistenceFailure, RecordNotFound, ValidationError
from ..core.ledger_types import ISSUANCE_CHOICES, SOURCE_CHOICES, TYPE_PARENT_CHOICES
from ..schemas.inventory import EDITABLE_FIELDS, InventoryRecord
from ..store.base import InventoryStore
from .derivation import derive_by_status, require_disposition, require_status
from .state import InventoryState, RecordCache

logger = logging.getLogger(__name__)

# Import and the codec store these upper-cased.
CHILD_FIELDS = ("type_child", "make_child")


@dataclass(frozen=True)
class EditResult:
    ok: bool
    operation: str
    record_id: str
    state: InventoryState
    staged: dict[str, Any] = field(default_factory=dict)
    previous: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def record(self) -> InventoryRecord | None:
        return self.state.get(self.record_id)


def check_field_value(field_name: str, value: Any) -> Any:
    """Reject writes outside the editable fields or their enumerations."""

    if field_name not in EDITABLE_FIELDS:
        raise ValidationError(f"Field {field_name!r} cannot be edited")
    if field_name == "status":
        return require_status(value)
    if field_name == "disposition":
        return require_disposition(value)
    if field_name == "issuance_type" and value not in ISSUANCE_CHOICES:
        raise ValidationError(f"Unknown issuance type {value!r}; expected one of {', '.join(ISSUANCE_CHOICES)}")
    if field_name in ("type_parent", "make_parent") and value not in TYPE_PARENT_CHOICES:
        raise ValidationError(f"Unknown {field_name.replace('_', ' ')} {value!r}")
    if field_name == "source":
        value = str(value or "").strip().lower()
        if value and value not in SOURCE_CHOICES:
            raise ValidationError(f"Unknown source {value!r}")
        return value
    if field_name in CHILD_FIELDS:
        return str(value or "").strip().upper()
    return "" if value is None else str(value)


def stage_field_edit(record: InventoryRecord, field_name: str, value: Any) -> dict[str, Any]:
    """Fields to write for an inline edit of ``field_name``."""

    if field_name == "status":
        return derive_by_status(record, value)
    return {field_name: check_field_value(field_name, value)}


class EditCoordinator:
    def __init__(self, store: InventoryStore, *, clock: Callable[[], str] = utc_timestamp) -> None:
        self.store = store
        self.clock = clock
        self._in_flight: set[tuple[str, str]] = set()

    def in_flight(self, record_id: str, field_name: str) -> bool:
        return (record_id, field_name) in self._in_flight

    def _require(self, cache: RecordCache, record_id: str) -> InventoryRecord:
        record = cache.state.get(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return record

    async def edit_field(self, cache: RecordCache, record_id: str, field_name: str, value: Any) -> EditResult:
        """Inline single-field edit; a status change carries its derived fields."""

        record = self._require(cache, record_id)
        staged = stage_field_edit(record, field_name, value)
        return await self._commit(cache, record, staged, operation="inline update")

    async def edit_fields(self, cache: RecordCache, record_id: str, changes: Mapping[str, Any]) -> EditResult:
        """Edit-form submission. Values are taken as entered; nothing is derived."""

        record = self._require(cache, record_id)
        if not changes:
            raise ValidationError("No fields to update")
        staged = {name: check_field_value(name, value) for name, value in changes.items()}
        return await self._commit(cache, record, staged, operation="update")

    async def toggle_validation(self, cache: RecordCache, record_id: str) -> EditResult:
        """Flip ``validated`` and stamp or clear ``validated_at`` with it."""

        record = self._require(cache, record_id)
        validated = not record.validated
        staged = {"validated": validated, "validated_at": self.clock() if validated else None}
        return await self._commit(cache, record, staged, operation="validation update")

    async def delete(self, cache: RecordCache, record_id: str) -> EditResult:
        """Remove a record once the store confirms; a failure leaves it untouched."""

        self._require(cache, record_id)
        try:
            await self.store.delete(record_id)
        except PersistenceFailure as exc:
            logger.warning(
                "edit.delete_failed",
                extra={"extra_data": {"record_id": record_id, "reason": exc.message}},
            )
            return EditResult(
                ok=False,
                operation="delete",
                record_id=record_id,
                state=cache.state,
                error=f"Failed to delete record: {exc.message}",
            )
        state = cache.set(cache.state.without(record_id))
        logger.info("edit.deleted", extra={"extra_data": {"record_id": record_id}})
        return EditResult(ok=True, operation="delete", record_id=record_id, state=state)

    async def _commit(
        self,
        cache: RecordCache,
        record: InventoryRecord,
        staged: dict[str, Any],
        *,
        operation: str,
    ) -> EditResult:
        record_id = record.id
        keys = {(record_id, name) for name in staged}
        busy = sorted(name for rid, name in keys & self._in_flight)
        if busy:
            raise EditConflict(record_id, busy[0])

        previous = {name: getattr(record, name) for name in staged}
        if previous == staged:
            return EditResult(
                ok=True,
                operation=operation,
                record_id=record_id,
                state=cache.state,
                staged=staged,
                previous=previous,
            )

        self._in_flight |= keys
        try:
            cache.set(cache.state.with_fields(record_id, staged))
            logger.info(
                "edit.staged",
                extra={"extra_data": {"record_id": record_id, "fields": sorted(staged)}},
            )
            try:
                await self.store.update(record_id, staged)
            except PersistenceFailure as exc:
                # Only the staged fields go back, so edits to other fields that
                # settled meanwhile survive.
                state = cache.set(cache.state.with_fields(record_id, previous))
                logger.warning(
                    "edit.rolled_back",
                    extra={
                        "extra_data": {
                            "record_id": record_id,
                            "fields": sorted(staged),
                            "reason": exc.message,
                        }
                    },
                )
                return EditResult(
                    ok=False,
                    operation=operation,
                    record_id=record_id,
                    state=state,
                    staged=staged,
                    previous=previous,
                    error=f"{operation.capitalize()} failed: {exc.message}",
                )
            except Exception:
                cache.set(cache.state.with_fields(record_id, previous))
                raise
        finally:
            self._in_flight -= keys

        logger.info("edit.committed", extra={"extra_data": {"record_id": record_id}})
        return EditResult(
            ok=True,
            operation=operation,
            record_id=record_id,
            state=cache.state,
            staged=staged,
            previous=previous,
        )


__all__ = [
    "EditCoordinator",
    "EditResult",
    "check_field_value",
    "stage_field_edit",
]
