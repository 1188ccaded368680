import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))
os.environ.setdefault("DB_URL", "sqlite://")

from fakes import FakeStore, make_record
from quicklook.core.exceptions import EditConflict, RecordNotFound, ValidationError
from quicklook.services.coordinator import EditCoordinator
from quicklook.services.state import InventoryState, RecordCache

STAMP = "2024-05-01T08:00:00Z"


def _setup(*records):
    records = records or (make_record("1"), make_record("2", unit="RHQ", station="Camp Vicente Lim"))
    store = FakeStore(records)
    cache = RecordCache()
    cache.replace_all(records)
    return store, cache, EditCoordinator(store, clock=lambda: STAMP)


def test_status_edit_stages_derived_fields_and_persists_them():
    store, cache, coordinator = _setup()

    result = asyncio.run(coordinator.edit_field(cache, "1", "status", "UNSERVICEABLE"))

    assert result.ok
    assert result.operation == "inline update"
    assert store.updates == [
        ("1", {"status": "UNSERVICEABLE", "disposition": "FOR DISPOSAL", "issuance_type": "NOT ISSUED"})
    ]
    record = cache.state.get("1")
    assert (record.status, record.disposition, record.issuance_type) == (
        "UNSERVICEABLE",
        "FOR DISPOSAL",
        "NOT ISSUED",
    )
    assert cache.state.get("2") == make_record("2", unit="RHQ", station="Camp Vicente Lim")


def test_non_status_edit_stages_only_that_field():
    store, cache, coordinator = _setup()

    asyncio.run(coordinator.edit_field(cache, "1", "disposition", "STOCK"))

    assert store.updates == [("1", {"disposition": "STOCK"})]
    assert cache.state.get("1").issuance_type == "ISSUED"


def test_child_fields_are_upper_cased_on_inline_and_form_edits():
    store, cache, coordinator = _setup()

    asyncio.run(coordinator.edit_field(cache, "1", "type_child", " revolver "))
    asyncio.run(coordinator.edit_fields(cache, "2", {"make_child": "smith & wesson", "model": "m&p9"}))

    assert store.updates == [
        ("1", {"type_child": "REVOLVER"}),
        ("2", {"make_child": "SMITH & WESSON", "model": "m&p9"}),
    ]
    assert cache.state.get("1").type_child == "REVOLVER"
    assert cache.state.get("2").make_child == "SMITH & WESSON"


def test_optimistic_value_is_visible_before_store_call_resolves():
    store, cache, coordinator = _setup()
    seen_by_store = []
    published = []
    store.on_update = lambda record_id, fields: seen_by_store.append(cache.state.get(record_id).name)
    cache.subscribe(lambda state: published.append(state.get("1").name))

    asyncio.run(coordinator.edit_field(cache, "1", "name", "Service Pistol"))

    assert seen_by_store == ["Service Pistol"]
    assert published == ["Service Pistol"]


def test_failed_update_restores_every_field_exactly():
    original = make_record("1", disposition="FOR REPAIR", issuance_type="ISSUED")
    store, cache, coordinator = _setup(original)
    store.fail.add("update")
    published = []
    cache.subscribe(published.append)

    result = asyncio.run(coordinator.edit_field(cache, "1", "status", "SERVICEABLE"))

    assert not result.ok
    assert result.error == "Inline update failed: store unavailable"
    assert result.previous == {"status": "SERVICEABLE", "disposition": "FOR REPAIR", "issuance_type": "ISSUED"}
    assert cache.state.get("1") == original
    assert result.record == original
    # optimistic state, then the revert
    assert [s.get("1").disposition for s in published] == ["ASSIGNED", "FOR REPAIR"]


def test_rollback_keeps_other_fields_that_settled_meanwhile():
    store, cache, coordinator = _setup()
    store.fail.add("update")

    async def scenario():
        store.hold = asyncio.Event()
        hold = store.hold
        pending = asyncio.create_task(coordinator.edit_field(cache, "1", "status", "FOR REPAIR"))
        await asyncio.sleep(0)
        store.fail.discard("update")
        name_result = await coordinator.edit_field(cache, "1", "name", "Renamed")
        store.fail.add("update")
        hold.set()
        return name_result, await pending

    name_result, status_result = asyncio.run(scenario())

    assert name_result.ok
    assert not status_result.ok
    record = cache.state.get("1")
    assert record.name == "Renamed"
    assert (record.status, record.disposition, record.issuance_type) == ("SERVICEABLE", "ASSIGNED", "ISSUED")


def test_overlapping_edit_of_same_field_is_rejected():
    store, cache, coordinator = _setup()

    async def scenario():
        store.hold = asyncio.Event()
        hold = store.hold
        first = asyncio.create_task(coordinator.edit_field(cache, "1", "status", "FOR REPAIR"))
        await asyncio.sleep(0)
        assert coordinator.in_flight("1", "disposition")
        with pytest.raises(EditConflict) as excinfo:
            await coordinator.edit_field(cache, "1", "disposition", "STOCK")
        snapshot = cache.state
        hold.set()
        result = await first
        return excinfo.value, snapshot, result

    conflict, snapshot, result = asyncio.run(scenario())

    assert conflict.field == "disposition"
    assert snapshot.get("1").disposition == "FOR REPAIR"
    assert result.ok
    assert len(store.updates) == 1
    assert not coordinator.in_flight("1", "status")


def test_unchanged_edit_skips_store():
    store, cache, coordinator = _setup()

    result = asyncio.run(coordinator.edit_field(cache, "1", "model", "G17"))

    assert result.ok
    assert store.updates == []


def test_form_submission_allows_manual_override():
    store, cache, coordinator = _setup()

    result = asyncio.run(
        coordinator.edit_fields(cache, "1", {"status": "UNSERVICEABLE", "disposition": "STOCK", "source": "Donated"})
    )

    assert result.ok
    assert result.operation == "update"
    record = cache.state.get("1")
    assert (record.status, record.disposition, record.issuance_type, record.source) == (
        "UNSERVICEABLE",
        "STOCK",
        "ISSUED",
        "donated",
    )


def test_invalid_values_are_rejected_before_staging():
    store, cache, coordinator = _setup()
    before = cache.state

    with pytest.raises(ValidationError):
        asyncio.run(coordinator.edit_field(cache, "1", "status", "LOST"))
    with pytest.raises(ValidationError):
        asyncio.run(coordinator.edit_field(cache, "1", "validated", "true"))
    with pytest.raises(ValidationError):
        asyncio.run(coordinator.edit_fields(cache, "1", {}))
    with pytest.raises(RecordNotFound):
        asyncio.run(coordinator.edit_field(cache, "404", "name", "x"))

    assert cache.state is before
    assert store.updates == []


def test_toggle_validation_stamps_and_clears():
    store, cache, coordinator = _setup()

    first = asyncio.run(coordinator.toggle_validation(cache, "1"))
    assert first.ok and first.operation == "validation update"
    assert (cache.state.get("1").validated, cache.state.get("1").validated_at) == (True, STAMP)

    asyncio.run(coordinator.toggle_validation(cache, "1"))
    assert (cache.state.get("1").validated, cache.state.get("1").validated_at) == (False, None)
    assert store.updates[-1] == ("1", {"validated": False, "validated_at": None})


def test_delete_removes_only_after_confirmation():
    store, cache, coordinator = _setup()
    store.fail.add("delete")

    failed = asyncio.run(coordinator.delete(cache, "1"))

    assert not failed.ok
    assert failed.error == "Failed to delete record: store unavailable"
    assert cache.state.get("1") == make_record("1")

    store.fail.clear()
    done = asyncio.run(coordinator.delete(cache, "1"))

    assert done.ok
    assert cache.state.get("1") is None
    assert len(cache.state) == 1
    assert store.deletes == ["1", "1"]


def test_state_helpers_leave_original_untouched():
    state = InventoryState.of([make_record("1")])

    changed = state.with_fields("1", {"name": "x"})

    assert state.get("1").name == "Pistol 9mm"
    assert changed.get("1").name == "x"
    assert state.with_fields("missing", {"name": "x"}) == state
    assert [r.id for r in state.prepend([make_record("9")]).records] == ["9", "1"]
