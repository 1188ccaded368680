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
from quicklook.core.exceptions import ImportFormatError, PersistenceFailure
from quicklook.services.csv_import import (
    IMPORT_ACTION,
    import_csv,
    normalize_csv_date,
    normalize_row,
    parse_csv_text,
)
from quicklook.services.state import RecordCache

HEADER = "type_parent,type_child,make_parent,make_child,serial_number,model,name,status,disposition,issuance_type,validated"
NOW = "2024-06-01T00:00:00Z"


def test_disposition_aliases_map_or_drop():
    fixed = normalize_row({"disposition": "On-Hand"}, line=2)
    dropped = normalize_row({"disposition": "sideways"}, line=3)

    assert fixed.payload["disposition"] == "onhand"
    assert "disposition" not in dropped.payload
    assert [(w.row, w.column, w.value) for w in dropped.warnings] == [(3, "disposition", "sideways")]


def test_enumerated_columns_accept_common_spellings():
    row = normalize_row(
        {
            "status": " Unserviceable ",
            "issuance_type": "NOT ISSUED",
            "source": "Donation",
            "validated": "yes",
        },
        now=NOW,
    )

    assert row.payload["status"] == "uns"
    assert row.payload["issuance_type"] == "not_issued"
    assert row.payload["source"] == "donated"
    assert row.payload["validated"] is True
    assert row.payload["validated_at"] == NOW
    assert row.warnings == []


def test_unrecognized_validated_and_parent_are_left_out():
    row = normalize_row({"validated": "maybe", "type_parent": "Artillery", "make_parent": "long fas"})

    assert "validated" not in row.payload
    assert "type_parent" not in row.payload
    assert row.payload["make_parent"] == "Long FAS"
    assert {w.column for w in row.warnings} == {"validated", "type_parent"}


def test_unit_and_station_fall_back_to_import_defaults():
    row = normalize_row({"station": "", "sector": "LAGUNA PPO"}, unit="RHQ", station="HQ")

    assert row.payload["unit"] == "LAGUNA PPO"
    assert row.payload["station"] == "HQ"


def test_numbers_are_cleaned_or_dropped():
    row = normalize_row({"acquisition_cost": "$1,250.50", "cost_of_repair": "n/a"})

    assert row.payload["acquisition_cost"] == pytest.approx(1250.5)
    assert "cost_of_repair" not in row.payload


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf", "sNaN"])
def test_non_finite_numbers_are_dropped_with_warning(raw):
    row = normalize_row({"acquisition_cost": raw, "cost_of_repair": "75"}, line=4)

    assert "acquisition_cost" not in row.payload
    assert row.payload["cost_of_repair"] == 75.0
    assert [(w.row, w.column, w.value) for w in row.warnings] == [(4, "acquisition_cost", raw)]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("05/03/99", "1999-03-05"),
        ("05/03/24", "2024-03-05"),
        ("5/3/2010", "2010-03-05"),
        ("2023-11-09", "2023-11-09"),
        ("31/02/20", ""),
        ("not-a-date", ""),
        ("", ""),
    ],
)
def test_normalize_csv_date(raw, expected):
    assert normalize_csv_date(raw) == expected


def test_parse_handles_quotes_and_blank_lines():
    text = (
        "\ufeff" + HEADER + ",user_office\r\n"
        'Long FAS,RIFLE,Long FAS,COLT,SN-1,M4,"Rifle, 5.56mm","svc",assigned,issued,no,"Desk ""A"""\r\n'
        "\r\n"
        ",,,,,,,,,,\n"
    )

    header, rows = parse_csv_text(text)

    assert header[0] == "type_parent"
    assert len(rows) == 1
    line, row = rows[0]
    assert line == 2
    assert row["name"] == "Rifle, 5.56mm"
    assert row["user_office"] == 'Desk "A"'


def test_missing_required_column_rejects_the_whole_file():
    store = FakeStore()
    cache = RecordCache()
    text = HEADER.replace(",validated", "") + "\nShort FAS,PISTOL,Short FAS,GLOCK,SN-9,G19,Pistol,svc,assigned,issued\n"

    with pytest.raises(ImportFormatError) as excinfo:
        asyncio.run(import_csv(text, store, cache))

    assert excinfo.value.missing == ["validated"]
    assert store.payloads == []
    assert len(cache.state) == 0


def test_import_inserts_rows_at_the_front_and_logs_activity():
    store = FakeStore()
    cache = RecordCache()
    cache.replace_all([make_record("1")])
    text = "\n".join(
        [
            HEADER,
            "Short FAS,pistol,Short FAS,glock,SN-9,G19,Pistol,svc,on hand,issued,yes",
            "Long FAS,RIFLE,Long FAS,COLT,SN-10,M4,Rifle,broken,stock,not issued,",
        ]
    )

    result = asyncio.run(
        import_csv(text, store, cache, unit="BATANGAS PPO", station="Lipa CPS", department="SUPPLY", clock=lambda: NOW)
    )

    assert [r.serial_number for r in result.inserted] == ["SN-9", "SN-10"]
    assert [r.id for r in cache.state.records][-1] == "1"
    assert cache.state.records[:2] == result.inserted
    first, second = result.inserted
    assert (first.type_child, first.make_child, first.disposition) == ("PISTOL", "GLOCK", "ONHAND")
    assert first.validated and first.validated_at == NOW
    assert first.unit == "BATANGAS PPO"
    assert second.status == ""
    assert [(w.row, w.column) for w in result.warnings] == [(3, "status")]
    assert [e["action"] for e in store.activity] == [IMPORT_ACTION, IMPORT_ACTION]
    assert store.activity[0]["performed_department"] == "SUPPLY"


def test_header_only_file_imports_nothing():
    store = FakeStore()
    cache = RecordCache()

    result = asyncio.run(import_csv(HEADER + "\n", store, cache))

    assert result.inserted == ()
    assert store.payloads == []


def test_empty_insert_response_is_a_failure(monkeypatch):
    store = FakeStore()
    cache = RecordCache()

    async def insert_nothing(payloads):
        return []

    monkeypatch.setattr(store, "insert_batch", insert_nothing)

    with pytest.raises(PersistenceFailure) as excinfo:
        asyncio.run(import_csv(HEADER + "\nShort FAS,PISTOL,Short FAS,GLOCK,SN-1,G17,Pistol,svc,assigned,issued,no", store, cache))

    assert excinfo.value.message == "No rows were inserted"
    assert len(cache.state) == 0


def test_activity_log_failure_does_not_undo_import():
    store = FakeStore()
    store.fail.add("activity log")
    cache = RecordCache()

    result = asyncio.run(import_csv(HEADER + "\nShort FAS,PISTOL,Short FAS,GLOCK,SN-1,G17,Pistol,svc,assigned,issued,no", store, cache))

    assert len(result.inserted) == 1
    assert len(cache.state) == 1
