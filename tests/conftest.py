from __future__ import annotations

import time
from pathlib import Path
from typing import Iterator

import pytest

from services.handler import RequestHandler
from storage.sensor_store import SensorStore

_tzset = getattr(time, "tzset", lambda: None)


@pytest.fixture(autouse=True)
def utc_local_time(monkeypatch) -> Iterator[None]:
    """Pin the process timezone so local timestamp text is deterministic."""
    monkeypatch.setenv("TZ", "UTC")
    _tzset()
    yield
    monkeypatch.undo()
    _tzset()


@pytest.fixture()
def store(tmp_path: Path) -> SensorStore:
    return SensorStore(root_path=tmp_path / "data")


@pytest.fixture()
def handler(store: SensorStore) -> RequestHandler:
    return RequestHandler(store=store)
