"""The persistence collaborator the ledger talks to.

Implementations speak ``InventoryRecord`` on the way out and accept record
attribute names on the way in; store codes never cross this interface except
for bulk-import payloads, which the CSV normalizer already emits in store
shape. Every failed call raises ``PersistenceFailure``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from ..schemas.inventory import InventoryRecord


@dataclass(frozen=True)
class AccessGrantInfo:
    department: str
    can_validate: bool


class InventoryStore(Protocol):
    async def fetch_all(self, unit: str | None = None) -> list[InventoryRecord]:
        """Return records ordered by unit, station, then type."""

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> None:
        ...

    async def delete(self, record_id: str) -> None:
        ...

    async def insert_batch(self, payloads: Sequence[Mapping[str, Any]]) -> list[InventoryRecord]:
        ...

    async def lookup_access_grant(self, department: str) -> AccessGrantInfo | None:
        ...

    async def lookup_department_for_user(self, user_id: str) -> str | None:
        ...

    async def log_activity(self, entries: Sequence[Mapping[str, Any]]) -> None:
        ...


__all__ = ["AccessGrantInfo", "InventoryStore"]
