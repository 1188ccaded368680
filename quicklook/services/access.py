"""Department check in front of the ``validated`` toggle.

The department is typed in for every attempt; a successful check does not
open a session, so the next validation asks again. Denials come back as an
``AccessDecision`` value with a reason code telling "no such department"
apart from "department may not validate".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..store.base import InventoryStore
from .coordinator import EditCoordinator, EditResult
from .state import RecordCache

logger = logging.getLogger(__name__)

GRANTED = "granted"
DEPARTMENT_MISSING = "department_missing"
DEPARTMENT_NOT_FOUND = "department_not_found"
DEPARTMENT_NOT_PERMITTED = "department_not_permitted"

_MESSAGES = {
    GRANTED: "Access granted",
    DEPARTMENT_MISSING: "Enter department",
    DEPARTMENT_NOT_FOUND: "Department not found",
    DEPARTMENT_NOT_PERMITTED: "This department cannot validate inventory",
}


def normalize_department(value: str | None) -> str:
    return (value or "").strip().upper()


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str
    department: str

    @property
    def message(self) -> str:
        return _MESSAGES[self.reason]


@dataclass(frozen=True)
class ValidationOutcome:
    decision: AccessDecision
    result: EditResult | None = None

    @property
    def ok(self) -> bool:
        return self.decision.allowed and self.result is not None and self.result.ok


class ValidationAccessGate:
    def __init__(self, store: InventoryStore, coordinator: EditCoordinator, *, admin_department: str = "ADMIN") -> None:
        self.store = store
        self.coordinator = coordinator
        self.admin_department = normalize_department(admin_department)

    async def check(self, department: str | None) -> AccessDecision:
        """Look the department up; store failures propagate as ``PersistenceFailure``."""

        name = normalize_department(department)
        if not name:
            return AccessDecision(allowed=False, reason=DEPARTMENT_MISSING, department=name)
        grant = await self.store.lookup_access_grant(name)
        if grant is None:
            decision = AccessDecision(allowed=False, reason=DEPARTMENT_NOT_FOUND, department=name)
        elif not grant.can_validate:
            decision = AccessDecision(allowed=False, reason=DEPARTMENT_NOT_PERMITTED, department=name)
        else:
            return AccessDecision(allowed=True, reason=GRANTED, department=name)
        logger.info("access.denied", extra={"extra_data": {"department": name, "reason": decision.reason}})
        return decision

    async def validate(self, cache: RecordCache, record_id: str, department: str | None) -> ValidationOutcome:
        """Check ``department`` and, when allowed, toggle the record's validation."""

        decision = await self.check(department)
        if not decision.allowed:
            return ValidationOutcome(decision=decision)
        result = await self.coordinator.toggle_validation(cache, record_id)
        return ValidationOutcome(decision=decision, result=result)

    async def identity_can_validate(self, user_id: str | None) -> bool:
        """Whether a signed-in user belongs to the admin department.

        Only decides if validation controls are offered; the toggle itself
        still goes through ``validate``.
        """

        if not user_id:
            return False
        department = await self.store.lookup_department_for_user(user_id)
        return normalize_department(department) == self.admin_department


__all__ = [
    "AccessDecision",
    "DEPARTMENT_MISSING",
    "DEPARTMENT_NOT_FOUND",
    "DEPARTMENT_NOT_PERMITTED",
    "GRANTED",
    "ValidationAccessGate",
    "ValidationOutcome",
    "normalize_department",
]
