from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, StrictBool

from ..deps import get_app_settings, get_record_store
from ..repositories.records.models import ENTRY_ID_PATTERN, RecordCreate, RecordKey
from ..repositories.records.query import RecordFilters
from ..repositories.records.records_repo import RecordStore
from ..settings import Settings

router = APIRouter(tags=["records"])


class BatchDeleteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    records: list[RecordKey] = Field(..., min_length=1)


class UpdateProcessedStatusRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    personId: str = Field(..., min_length=1)
    entryId: str = Field(..., pattern=ENTRY_ID_PATTERN)
    isProcessed: StrictBool


def _page_limit(limit: int | None, settings: Settings) -> int:
    if limit is None:
        return settings.default_page_limit
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be a positive integer")
    cap = settings.max_page_limit
    if cap is not None and limit > cap:
        raise HTTPException(status_code=400, detail=f"limit must be between 1 and {cap}")
    return limit


@router.post("", status_code=201)
def create_record(
    body: RecordCreate,
    store: RecordStore = Depends(get_record_store),
):
    record = store.create(body)
    return {"message": "Record created successfully", "data": record.to_item()}


@router.get("")
def list_records(
    limit: int | None = Query(default=None),
    next_token: str | None = Query(default=None, alias="nextToken"),
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_app_settings),
):
    page = store.list_sorted(limit=_page_limit(limit, settings), next_token=next_token)
    return page.to_response()


@router.get("/filter")
def list_filtered_records(
    feed: str | None = Query(default=None),
    operation: str | None = Query(default=None),
    status: str | None = Query(default=None),
    worker: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    next_token: str | None = Query(default=None, alias="nextToken"),
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_app_settings),
):
    filters = RecordFilters.from_params(feed=feed, operation=operation, status=status, worker=worker)
    page = store.list_filtered(
        filters=filters,
        limit=_page_limit(limit, settings),
        next_token=next_token,
    )
    return page.to_response()


@router.get("/search")
def search_records(
    person_id: str = Query(..., alias="personId"),
    store: RecordStore = Depends(get_record_store),
):
    records = store.search_by_person_id(person_id)
    return {
        "message": f"Found {len(records)} records",
        "data": [r.to_item() for r in records],
    }


@router.delete("")
def delete_record(
    body: RecordKey,
    store: RecordStore = Depends(get_record_store),
):
    store.delete(body.personId, body.entryId)
    return {"message": "Record deleted successfully"}


@router.delete("/batchdelete")
def batch_delete_records(
    body: BatchDeleteRequest,
    store: RecordStore = Depends(get_record_store),
):
    deleted = store.batch_delete(body.records)
    return {"message": f"{deleted} records deleted successfully"}


@router.patch("/processed-status")
def update_processed_status(
    body: UpdateProcessedStatusRequest,
    store: RecordStore = Depends(get_record_store),
):
    record = store.update_processed_status(body.personId, body.entryId, body.isProcessed)
    return {"message": "Record processed status updated successfully", "data": record.to_item()}
