from __future__ import annotations

from fastapi import Request

from .db.dynamodb.errors import DdbInternal
from .repositories.records.records_repo import RecordStore
from .settings import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_record_store(request: Request) -> RecordStore:
    store = getattr(request.app.state, "record_store", None)
    if store is None:
        raise DdbInternal(message="TABLE_NAME is not set", operation="Config")
    return store
