"""In-memory record set owned by whoever drives the ledger.

``InventoryState`` is an immutable snapshot. ``RecordCache`` holds the current
snapshot and notifies subscribers on every change so an optimistic edit is
visible before its store call settles. The cache only ever mirrors the store;
it is reloaded from, never written back to, the store wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from ..schemas.inventory import InventoryRecord


@dataclass(frozen=True)
class InventoryState:
    records: tuple[InventoryRecord, ...] = ()

    @classmethod
    def of(cls, records: Iterable[InventoryRecord]) -> "InventoryState":
        return cls(records=tuple(records))

    def __len__(self) -> int:
        return len(self.records)

    def get(self, record_id: str) -> InventoryRecord | None:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def with_fields(self, record_id: str, fields: Mapping[str, Any]) -> "InventoryState":
        """Return a state where ``record_id`` carries ``fields``; unknown ids are a no-op."""

        return InventoryState(
            records=tuple(
                record.model_copy(update=dict(fields)) if record.id == record_id else record
                for record in self.records
            )
        )

    def without(self, record_id: str) -> "InventoryState":
        return InventoryState(records=tuple(r for r in self.records if r.id != record_id))

    def prepend(self, records: Iterable[InventoryRecord]) -> "InventoryState":
        return InventoryState(records=tuple(records) + self.records)


Listener = Callable[[InventoryState], None]


@dataclass
class RecordCache:
    state: InventoryState = field(default_factory=InventoryState)
    loaded: bool = False
    _listeners: list[Listener] = field(default_factory=list, repr=False)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, state: InventoryState) -> InventoryState:
        self.state = state
        for listener in list(self._listeners):
            listener(state)
        return state

    def replace_all(self, records: Iterable[InventoryRecord]) -> InventoryState:
        self.loaded = True
        return self.set(InventoryState.of(records))


__all__ = ["InventoryState", "Listener", "RecordCache"]
