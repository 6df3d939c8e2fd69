from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure `backend/` is on sys.path so `import hcm_admin.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from fake_dynamodb import FakeTable  # noqa: E402

from hcm_admin.db.dynamodb.table import DynamoTable  # noqa: E402
from hcm_admin.repositories.records.query import RecordQueryEngine  # noqa: E402
from hcm_admin.repositories.records.records_repo import RecordStore  # noqa: E402
from hcm_admin.settings import Settings  # noqa: E402


class TickingClock:
    """Each call is one millisecond later, so records get distinct timestamps."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 26, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(milliseconds=1)
        return self.now


@pytest.fixture
def fake_table() -> FakeTable:
    return FakeTable("testTable")


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def ddb_table(fake_table) -> DynamoTable:
    return DynamoTable(table_name=fake_table.name, table=fake_table)


@pytest.fixture
def store(ddb_table, clock) -> RecordStore:
    return RecordStore(ddb_table, query_engine=RecordQueryEngine(ddb_table), clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(NODE_ENV="development", DISABLE_AUTH=True, TABLE_NAME="testTable")


@pytest.fixture
def client(settings, store):
    from fastapi.testclient import TestClient

    from hcm_admin.main import create_app

    return TestClient(create_app(settings=settings, store=store))


def _payload(**overrides):
    payload = {
        "PersonId": "108",
        "Feed": "empassignment",
        "DMLOperation": "INSERT",
        "IsProcessed": False,
        "WorkerType": "EMP",
        "ProcessedMessage": "Initial record creation",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_payload():
    return _payload
