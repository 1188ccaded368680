import os
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))
os.environ.setdefault("DB_URL", "sqlite://")

from quicklook.core.settings import AppSettings


def test_allowed_origins_read_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a.example, http://b.example,")

    loaded = AppSettings()

    assert loaded.ALLOWED_ORIGINS == ["http://a.example", "http://b.example"]


def test_allowed_origins_default_empty(monkeypatch):
    monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)

    assert AppSettings().ALLOWED_ORIGINS == []


def test_store_backend_normalized_and_checked(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", " REST ")
    assert AppSettings().STORE_BACKEND == "rest"

    monkeypatch.setenv("STORE_BACKEND", "mongo")
    with pytest.raises(ValidationError):
        AppSettings()
