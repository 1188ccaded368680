"""Client for a hosted PostgREST-style store.

Filters use PostgREST operators (``id=eq.42``) and writes ask for the
affected rows back with ``Prefer: return=representation`` so that an update
or delete touching nothing can be reported as a failure.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from ..core.exceptions import PersistenceFailure
from ..schemas.inventory import InventoryRecord
from .base import AccessGrantInfo
from .codec import fields_to_row, records_from_rows

logger = logging.getLogger(__name__)

RETURN_ROWS = {"Prefer": "return=representation"}
ORDERING = "unit.asc,station.asc,type_child.asc"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or body.get("error") or ""
        return f"{code} {message}".strip() if code else str(message or response.status_code)
    return response.text.strip() or f"HTTP {response.status_code}"


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    if response.status_code < 400:
        return
    if response.status_code in {401, 403}:
        logger.warning("store.auth_failed", extra={"extra_data": {"operation": operation, "status": response.status_code}})
    elif response.status_code >= 500:
        logger.error("store.server_error", extra={"extra_data": {"operation": operation, "status": response.status_code}})
    else:
        logger.error("store.request_rejected", extra={"extra_data": {"operation": operation, "status": response.status_code}})
    raise PersistenceFailure(operation, _error_message(response))


class RestInventoryStore:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = "inventory_items",
        access_table: str = "inventory_access",
        activity_table: str = "inventory_activity_log",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.table = table
        self.view = f"{table}_form"
        self.access_table = access_table
        self.activity_table = activity_table
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("store.unreachable", extra={"extra_data": {"operation": operation, "reason": str(exc)}})
            raise PersistenceFailure(operation, str(exc) or exc.__class__.__name__) from exc
        _raise_for_status(response, operation)
        if not response.content:
            return None
        return response.json()

    async def fetch_all(self, unit: str | None = None) -> list[InventoryRecord]:
        params = {"select": "*", "order": ORDERING}
        if unit:
            params["unit"] = f"eq.{unit}"
        last_error: PersistenceFailure | None = None
        # The read view carries the same columns and serves when the table is locked down.
        for source in (self.table, self.view):
            try:
                rows = await self._request("fetch", "GET", f"/{source}", params=params)
            except PersistenceFailure as exc:
                last_error = exc
                continue
            return records_from_rows(rows or [])
        raise last_error or PersistenceFailure("fetch", "no readable source")

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> None:
        rows = await self._request(
            "update",
            "PATCH",
            f"/{self.table}",
            params={"id": f"eq.{record_id}"},
            json=fields_to_row(fields),
            headers=RETURN_ROWS,
        )
        if not rows:
            raise PersistenceFailure("update", f"record {record_id} not found")

    async def delete(self, record_id: str) -> None:
        rows = await self._request(
            "delete",
            "DELETE",
            f"/{self.table}",
            params={"id": f"eq.{record_id}"},
            headers=RETURN_ROWS,
        )
        if not rows:
            raise PersistenceFailure("delete", f"record {record_id} not found")

    async def insert_batch(self, payloads: Sequence[Mapping[str, Any]]) -> list[InventoryRecord]:
        rows = await self._request(
            "insert",
            "POST",
            f"/{self.table}",
            params={"select": "*"},
            json=[dict(payload) for payload in payloads],
            headers=RETURN_ROWS,
        )
        return records_from_rows(rows or [])

    async def lookup_access_grant(self, department: str) -> AccessGrantInfo | None:
        rows = await self._request(
            "access lookup",
            "GET",
            f"/{self.access_table}",
            params={"select": "department,can_validate", "department": f"eq.{department}"},
        )
        if not rows:
            return None
        row = rows[0]
        return AccessGrantInfo(department=str(row.get("department") or department), can_validate=bool(row.get("can_validate")))

    async def lookup_department_for_user(self, user_id: str) -> str | None:
        rows = await self._request(
            "access lookup",
            "GET",
            f"/{self.access_table}",
            params={"select": "department", "user_id": f"eq.{user_id}"},
        )
        if not rows:
            return None
        return rows[0].get("department")

    async def log_activity(self, entries: Sequence[Mapping[str, Any]]) -> None:
        await self._request("activity log", "POST", f"/{self.activity_table}", json=[dict(e) for e in entries])
