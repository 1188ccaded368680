"""SQLAlchemy tables backing the SQL store.

Enumerated columns hold store codes (``svc``, ``onhand`` ...); the codec in
``quicklook/store/codec.py`` translates them for the ledger.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Float, Integer, Text

from ..db.session import Base


class InventoryItem(Base):
    """One physical asset row."""

    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True, index=True)
    unit = Column(Text, nullable=False, default="", index=True)
    station = Column(Text, nullable=False, default="", index=True)
    serial_number = Column(Text, nullable=True)
    type_parent = Column(Text, nullable=True)
    type_child = Column(Text, nullable=True)
    make_parent = Column(Text, nullable=True)
    make_child = Column(Text, nullable=True)
    model = Column(Text, nullable=True)
    name = Column(Text, nullable=True)
    status = Column(Text, nullable=True)
    disposition = Column(Text, nullable=True)
    issuance_type = Column(Text, nullable=True)
    validated = Column(Boolean, nullable=False, default=False)
    validated_at = Column(Text, nullable=True)
    source = Column(Text, nullable=True)
    user_office = Column(Text, nullable=True)
    acquisition_date = Column(Text, nullable=True)
    acquisition_cost = Column(Float, nullable=True)
    cost_of_repair = Column(Float, nullable=True)
    created_at = Column(Text, nullable=False)

    def as_row(self) -> dict[str, object]:
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


class AccessGrant(Base):
    """Department permission record; maintained outside this service."""

    __tablename__ = "inventory_access"

    id = Column(Integer, primary_key=True, index=True)
    department = Column(Text, nullable=False, unique=True, index=True)
    can_validate = Column(Boolean, nullable=False, default=False)
    user_id = Column(Text, nullable=True, index=True)


class ActivityLogEntry(Base):
    """Audit trail for bulk imports."""

    __tablename__ = "inventory_activity_log"

    id = Column(Integer, primary_key=True, index=True)
    unit = Column(Text, nullable=True)
    station = Column(Text, nullable=True)
    inventory_id = Column(Integer, nullable=True, index=True)
    action = Column(Text, nullable=False)
    performed_department = Column(Text, nullable=True)
    snapshot = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
