import asyncio
import json
import os
import sys
from pathlib import Path

import httpx
import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))
os.environ.setdefault("DB_URL", "sqlite://")

from quicklook.core.exceptions import PersistenceFailure, ValidationError
from quicklook.db.session import Base
from quicklook.models import inventory as inventory_model  # noqa: F401
from quicklook.models.inventory import AccessGrant, ActivityLogEntry, InventoryItem
from quicklook.store.codec import fields_to_row, record_from_row, records_from_rows
from quicklook.store.rest import RestInventoryStore
from quicklook.store.sql import SqlInventoryStore

CREATED = "2024-01-01T00:00:00Z"


# ---- codec


def test_record_from_row_reads_codes_and_legacy_columns():
    record = record_from_row(
        {
            "id": 7,
            "sector": "RHQ",
            "station": "HQ",
            "serialNo": "A-1",
            "type": "rifle",
            "equipment": "Galil ACE",
            "status": "uns",
            "disposition": "repair",
            "issuance": "not_issued",
            "validated": False,
            "validatedAt": "2024-02-02T00:00:00Z",
            "source": "FAS",
        }
    )

    assert record.id == "7"
    assert (record.unit, record.serial_number, record.name) == ("RHQ", "A-1", "Galil ACE")
    assert (record.type_parent, record.type_child) == ("Long FAS", "RIFLE")
    assert (record.status, record.disposition, record.issuance_type) == ("UNSERVICEABLE", "FOR REPAIR", "NOT ISSUED")
    assert record.validated_at is None
    assert record.source == "fas"


def test_record_from_row_rejects_bad_shapes():
    with pytest.raises(ValidationError):
        record_from_row({"unit": "RHQ"})
    with pytest.raises(ValidationError):
        record_from_row({"id": 1, "status": "melted"})
    with pytest.raises(ValidationError):
        record_from_row({"id": 1, "validated": True})


def test_records_from_rows_skips_rejected_rows():
    records = records_from_rows([{"id": 1, "status": "svc"}, {"status": "svc"}, {"id": 3, "status": "ber"}])

    assert [(r.id, r.status) for r in records] == [("1", "SERVICEABLE"), ("3", "BER")]


def test_fields_to_row_encodes_display_values():
    row = fields_to_row(
        {"status": "FOR REPAIR", "disposition": "FOR DISPOSAL", "issuance_type": "NOT ISSUED", "validated": True}
    )

    assert row == {"status": "rep", "disposition": "disposal", "issuance_type": "not_issued", "validated": True}
    with pytest.raises(ValidationError):
        fields_to_row({"status": "svc"})
    with pytest.raises(ValidationError):
        fields_to_row({"id": "2"})


# ---- SQL store


@pytest.fixture()
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    db.add_all(
        [
            InventoryItem(unit="RHQ", station="B", type_child="PISTOL", status="svc", disposition="assigned",
                          issuance_type="issued", created_at=CREATED),
            InventoryItem(unit="CAVITE PPO", station="A", type_child="RIFLE", status="uns", disposition="disposal",
                          issuance_type="not_issued", created_at=CREATED),
            AccessGrant(department="ADMIN", can_validate=True, user_id="u-1"),
            AccessGrant(department="FINANCE", can_validate=False),
        ]
    )
    db.commit()
    db.close()
    return TestingSessionLocal


def test_sql_fetch_all_decodes_in_store_order(session_factory):
    store = SqlInventoryStore(session_factory)

    records = asyncio.run(store.fetch_all())
    only_rhq = asyncio.run(store.fetch_all(unit="RHQ"))

    assert [(r.unit, r.status) for r in records] == [("CAVITE PPO", "UNSERVICEABLE"), ("RHQ", "SERVICEABLE")]
    assert [r.unit for r in only_rhq] == ["RHQ"]


def test_sql_update_writes_codes(session_factory):
    store = SqlInventoryStore(session_factory)

    asyncio.run(store.update("1", {"status": "FOR REPAIR", "disposition": "FOR REPAIR", "name": "Sidearm"}))

    db = session_factory()
    item = db.get(InventoryItem, 1)
    assert (item.status, item.disposition, item.name) == ("rep", "repair", "Sidearm")
    db.close()


def test_sql_missing_records_fail(session_factory):
    store = SqlInventoryStore(session_factory)

    with pytest.raises(PersistenceFailure) as excinfo:
        asyncio.run(store.update("99", {"name": "x"}))
    assert excinfo.value.operation == "update"
    with pytest.raises(PersistenceFailure):
        asyncio.run(store.delete("abc"))

    asyncio.run(store.delete("2"))
    assert [r.id for r in asyncio.run(store.fetch_all())] == ["1"]


def test_sql_insert_batch_and_activity_log(session_factory):
    store = SqlInventoryStore(session_factory)

    inserted = asyncio.run(
        store.insert_batch([{"unit": "RIZAL PPO", "station": "Antipolo", "status": "rep", "bogus": "ignored"}])
    )
    asyncio.run(
        store.log_activity(
            [{"unit": "RIZAL PPO", "inventory_id": inserted[0].id, "action": "CSV_IMPORT", "snapshot": {"a": 1}}]
        )
    )

    assert [(r.id, r.status, r.validated) for r in inserted] == [("3", "FOR REPAIR", False)]
    db = session_factory()
    entry = db.execute(select(ActivityLogEntry)).scalars().one()
    assert entry.inventory_id == 3
    assert json.loads(entry.snapshot) == {"a": 1}
    db.close()


def test_sql_access_lookups(session_factory):
    store = SqlInventoryStore(session_factory)

    admin = asyncio.run(store.lookup_access_grant("ADMIN"))
    finance = asyncio.run(store.lookup_access_grant("FINANCE"))

    assert admin.can_validate is True
    assert finance.can_validate is False
    assert asyncio.run(store.lookup_access_grant("NOPE")) is None
    assert asyncio.run(store.lookup_department_for_user("u-1")) == "ADMIN"
    assert asyncio.run(store.lookup_department_for_user("u-2")) is None


# ---- REST store


def _rest_store(handler):
    return RestInventoryStore("https://store.example", "anon-key", transport=httpx.MockTransport(handler))


def test_rest_fetch_falls_back_to_read_view():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        if request.url.path.endswith("/inventory_items"):
            return httpx.Response(404, json={"code": "42P01", "message": "relation does not exist"})
        return httpx.Response(200, json=[{"id": 5, "unit": "RHQ", "status": "svc"}])

    records = asyncio.run(_rest_store(handler).fetch_all())

    assert seen == ["/rest/v1/inventory_items", "/rest/v1/inventory_items_form"]
    assert [(r.id, r.status) for r in records] == [("5", "SERVICEABLE")]


def test_rest_fetch_surfaces_last_error():
    def handler(request):
        return httpx.Response(503, json={"message": f"down: {request.url.path}"})

    with pytest.raises(PersistenceFailure) as excinfo:
        asyncio.run(_rest_store(handler).fetch_all())

    assert excinfo.value.message == "down: /rest/v1/inventory_items_form"


def test_rest_update_sends_codes_and_requires_a_row():
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json=[{"id": 5}] if len(captured) == 1 else [])

    store = _rest_store(handler)
    asyncio.run(store.update("5", {"status": "SERVICEABLE"}))
    with pytest.raises(PersistenceFailure):
        asyncio.run(store.update("6", {"status": "SERVICEABLE"}))

    first = captured[0]
    assert first.method == "PATCH"
    assert first.url.params["id"] == "eq.5"
    assert first.headers["Prefer"] == "return=representation"
    assert first.headers["apikey"] == "anon-key"
    assert json.loads(first.content) == {"status": "svc"}


def test_rest_access_lookup_and_network_errors():
    def handler(request):
        if request.url.params.get("department") == "eq.ADMIN":
            return httpx.Response(200, json=[{"department": "ADMIN", "can_validate": True}])
        if request.url.params.get("department"):
            return httpx.Response(200, json=[])
        raise httpx.ConnectError("connection refused", request=request)

    store = _rest_store(handler)

    assert asyncio.run(store.lookup_access_grant("ADMIN")).can_validate is True
    assert asyncio.run(store.lookup_access_grant("NOPE")) is None
    with pytest.raises(PersistenceFailure) as excinfo:
        asyncio.run(store.delete("5"))
    assert excinfo.value.operation == "delete"


def test_rest_failures_log_structured_fields(caplog):
    def handler(request):
        if request.method == "DELETE":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(401, json={"message": "bad key"})

    store = _rest_store(handler)
    caplog.set_level("WARNING", logger="quicklook.store.rest")

    with pytest.raises(PersistenceFailure):
        asyncio.run(store.lookup_access_grant("ADMIN"))
    with pytest.raises(PersistenceFailure):
        asyncio.run(store.delete("5"))

    events = [(r.getMessage(), r.extra_data) for r in caplog.records if r.name == "quicklook.store.rest"]
    assert events == [
        ("store.auth_failed", {"operation": "access lookup", "status": 401}),
        ("store.unreachable", {"operation": "delete", "reason": "connection refused"}),
    ]
