"""Process-wide ledger wiring.

One store, one ``RecordCache`` and one ``EditCoordinator`` live for the life
of the process so in-flight edits from concurrent requests see each other.
The cache is filled from the store on first use.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import lru_cache

from ..core.settings import AppSettings, get_settings
from ..db.session import SessionLocal
from ..services.access import ValidationAccessGate
from ..services.coordinator import EditCoordinator
from ..services.state import RecordCache
from ..store import InventoryStore, RestInventoryStore, SqlInventoryStore

logger = logging.getLogger(__name__)


@dataclass
class Ledger:
    store: InventoryStore
    coordinator: EditCoordinator
    gate: ValidationAccessGate
    cache: RecordCache = field(default_factory=RecordCache)
    page_size: int = 10
    _load_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def loaded_cache(self) -> RecordCache:
        if self.cache.loaded:
            return self.cache
        async with self._load_lock:
            if not self.cache.loaded:
                await self.reload()
        return self.cache

    async def reload(self) -> RecordCache:
        records = await self.store.fetch_all()
        self.cache.replace_all(records)
        logger.info("ledger.loaded", extra={"extra_data": {"records": len(records)}})
        return self.cache


def build_store(config: AppSettings) -> InventoryStore:
    if config.STORE_BACKEND == "rest":
        if not config.STORE_URL:
            raise RuntimeError("STORE_URL is required when STORE_BACKEND is 'rest'")
        return RestInventoryStore(
            config.STORE_URL,
            config.STORE_API_KEY,
            table=config.STORE_TABLE,
            access_table=config.STORE_ACCESS_TABLE,
            activity_table=config.STORE_ACTIVITY_TABLE,
            timeout=config.STORE_TIMEOUT,
        )
    return SqlInventoryStore(SessionLocal)


def build_ledger(store: InventoryStore, config: AppSettings | None = None) -> Ledger:
    config = config or get_settings()
    coordinator = EditCoordinator(store)
    gate = ValidationAccessGate(store, coordinator, admin_department=config.ADMIN_DEPARTMENT)
    return Ledger(store=store, coordinator=coordinator, gate=gate, page_size=config.PAGE_SIZE)


@lru_cache(maxsize=1)
def get_ledger() -> Ledger:
    config = get_settings()
    return build_ledger(build_store(config), config)
