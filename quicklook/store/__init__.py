from __future__ import annotations

from .base import AccessGrantInfo, InventoryStore
from .rest import RestInventoryStore
from .sql import SqlInventoryStore

__all__ = [
    "AccessGrantInfo",
    "InventoryStore",
    "RestInventoryStore",
    "SqlInventoryStore",
]
