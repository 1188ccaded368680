from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with a trailing ``Z``, as stored in text columns."""

    return datetime.now(tz=timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"
