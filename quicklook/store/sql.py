"""SQLAlchemy-backed store used for local deployments and tests."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import utc_timestamp
from ..core.exceptions import PersistenceFailure
from ..models.inventory import AccessGrant, ActivityLogEntry, InventoryItem
from .base import AccessGrantInfo
from .codec import fields_to_row, records_from_rows
from ..schemas.inventory import InventoryRecord

logger = logging.getLogger(__name__)

_ITEM_COLUMNS = {column.name for column in InventoryItem.__table__.columns}


def _primary_key(record_id: str, operation: str) -> int:
    try:
        return int(record_id)
    except (TypeError, ValueError) as exc:
        raise PersistenceFailure(operation, f"record {record_id!r} not found") from exc


class SqlInventoryStore:
    """Run each call in a short-lived session on a worker thread."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def _run(self, operation: str, fn: Callable[[Session], Any]) -> Any:
        def work() -> Any:
            db = self._session_factory()
            try:
                result = fn(db)
                db.commit()
                return result
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("store.sql_error", extra={"extra_data": {"operation": operation}})
                raise PersistenceFailure(operation, str(exc)) from exc
            finally:
                db.close()

        return await asyncio.to_thread(work)

    async def fetch_all(self, unit: str | None = None) -> list[InventoryRecord]:
        def query(db: Session) -> list[dict[str, Any]]:
            stmt = select(InventoryItem).order_by(
                InventoryItem.unit, InventoryItem.station, InventoryItem.type_child, InventoryItem.id
            )
            if unit:
                stmt = stmt.where(InventoryItem.unit == unit)
            return [item.as_row() for item in db.execute(stmt).scalars().all()]

        return records_from_rows(await self._run("fetch", query))

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> None:
        row = fields_to_row(fields)
        pk = _primary_key(record_id, "update")

        def apply(db: Session) -> None:
            item = db.get(InventoryItem, pk)
            if item is None:
                raise PersistenceFailure("update", f"record {record_id} not found")
            for key, value in row.items():
                setattr(item, key, value)

        await self._run("update", apply)

    async def delete(self, record_id: str) -> None:
        pk = _primary_key(record_id, "delete")

        def remove(db: Session) -> None:
            item = db.get(InventoryItem, pk)
            if item is None:
                raise PersistenceFailure("delete", f"record {record_id} not found")
            db.delete(item)

        await self._run("delete", remove)

    async def insert_batch(self, payloads: Sequence[Mapping[str, Any]]) -> list[InventoryRecord]:
        def insert(db: Session) -> list[dict[str, Any]]:
            now = utc_timestamp()
            items = []
            for payload in payloads:
                data = {key: value for key, value in payload.items() if key in _ITEM_COLUMNS and key != "id"}
                data.setdefault("created_at", now)
                data.setdefault("validated", False)
                items.append(InventoryItem(**data))
            db.add_all(items)
            db.flush()
            return [item.as_row() for item in items]

        return records_from_rows(await self._run("insert", insert))

    async def lookup_access_grant(self, department: str) -> AccessGrantInfo | None:
        def lookup(db: Session) -> AccessGrantInfo | None:
            stmt = select(AccessGrant).where(AccessGrant.department == department)
            grant = db.execute(stmt).scalars().first()
            if grant is None:
                return None
            return AccessGrantInfo(department=grant.department, can_validate=bool(grant.can_validate))

        return await self._run("access lookup", lookup)

    async def lookup_department_for_user(self, user_id: str) -> str | None:
        def lookup(db: Session) -> str | None:
            stmt = select(AccessGrant.department).where(AccessGrant.user_id == user_id)
            return db.execute(stmt).scalars().first()

        return await self._run("access lookup", lookup)

    async def log_activity(self, entries: Sequence[Mapping[str, Any]]) -> None:
        def insert(db: Session) -> None:
            now = utc_timestamp()
            for entry in entries:
                inventory_id = entry.get("inventory_id")
                db.add(
                    ActivityLogEntry(
                        unit=entry.get("unit"),
                        station=entry.get("station"),
                        inventory_id=int(inventory_id) if inventory_id is not None else None,
                        action=entry["action"],
                        performed_department=entry.get("performed_department"),
                        snapshot=json.dumps(entry.get("snapshot"), default=str),
                        created_at=now,
                    )
                )

        await self._run("activity log", insert)
