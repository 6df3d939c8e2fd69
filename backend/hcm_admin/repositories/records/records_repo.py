from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from boto3.dynamodb.conditions import Attr
from pydantic import ValidationError

from ...db.dynamodb.errors import DdbConflict, DdbError, DdbNotFound, DdbValidation
from ...db.dynamodb.table import MAX_BATCH_WRITE_ITEMS, DynamoTable
from ...observability.logging import get_logger
from .models import CONSTANT_KEY, Record, RecordCreate, RecordKey, generate_entry_id, now_iso
from .query import RecordFilters, RecordPage, RecordQueryEngine

log = get_logger("records_repo")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validation_message(exc: ValidationError) -> str:
    parts: list[str] = []
    for e in exc.errors():
        loc = ".".join(str(x) for x in (e.get("loc") or ()))
        parts.append(f"{loc}: {e.get('msg', 'Invalid value')}" if loc else str(e.get("msg")))
    return "; ".join(parts) or "Invalid record"


def _require_key(person_id: str | None, entry_id: str | None, *, operation: str) -> dict[str, str]:
    pid = str(person_id or "").strip()
    eid = str(entry_id or "").strip()
    if not pid or not eid:
        raise DdbValidation(message="PersonId and EntryId are required", operation=operation)
    return {"PersonId": pid, "EntryId": eid}


def _key_of(entry: RecordKey | Mapping[str, Any]) -> dict[str, str] | None:
    """Table key of a batch entry, or None when either part is missing."""
    if isinstance(entry, RecordKey):
        return entry.to_key()
    if not isinstance(entry, Mapping):
        return None
    pid = str(entry.get("PersonId", entry.get("personId")) or "").strip()
    eid = str(entry.get("EntryId", entry.get("entryId")) or "").strip()
    if not pid or not eid:
        return None
    return {"PersonId": pid, "EntryId": eid}


class RecordStore:
    """CRUD over the feed records table.

    Holds no cache: every call is a direct read/write against DynamoDB. Store
    errors are logged and re-raised unchanged for the HTTP layer to map.
    """

    def __init__(
        self,
        table: DynamoTable,
        *,
        query_engine: RecordQueryEngine | None = None,
        clock: Callable[[], datetime] = _utcnow,
        batch_size: int = MAX_BATCH_WRITE_ITEMS,
    ):
        self._table = table
        self._query = query_engine or RecordQueryEngine(table)
        self._clock = clock
        self._batch_size = batch_size

    @property
    def table_name(self) -> str:
        return self._table.table_name

    # --- create ---

    def create(self, payload: RecordCreate | Mapping[str, Any]) -> Record:
        if isinstance(payload, RecordCreate):
            data = payload
        else:
            try:
                data = RecordCreate.model_validate(dict(payload))
            except ValidationError as e:
                raise DdbValidation(message=_validation_message(e), operation="PutItem") from e

        now = now_iso(self._clock())
        record = Record(
            **data.model_dump(exclude={"EntryId"}),
            EntryId=data.EntryId or generate_entry_id(),
            ConstantKey=CONSTANT_KEY,
            PublishedDateTime=now,
            UpdatedDateTime=now,
        )

        try:
            self._table.put_item(item=record.to_item())
        except DdbError as e:
            log.error(
                "record_create_failed",
                person_id=record.PersonId,
                entry_id=record.EntryId,
                error=str(e),
            )
            raise

        log.info(
            "record_created",
            person_id=record.PersonId,
            entry_id=record.EntryId,
            feed=record.Feed,
            published_at=record.PublishedDateTime,
        )
        return record

    # --- listing ---

    def list_sorted(self, *, limit: int, next_token: str | None = None) -> RecordPage:
        try:
            page = self._query.sorted_page(limit=limit, next_token=next_token)
        except DdbError as e:
            log.error("records_list_failed", limit=limit, error=str(e))
            raise
        log.info("records_listed", limit=limit, count=page.count, has_more=bool(page.next_token))
        return page

    def list_filtered(
        self,
        *,
        filters: RecordFilters,
        limit: int,
        next_token: str | None = None,
    ) -> RecordPage:
        try:
            page = self._query.filtered_page(filters=filters, limit=limit, next_token=next_token)
        except DdbError as e:
            log.error("records_filter_failed", limit=limit, error=str(e), **filters.to_log_dict())
            raise
        log.info(
            "records_filtered",
            limit=limit,
            count=page.count,
            has_more=bool(page.next_token),
            **filters.to_log_dict(),
        )
        return page

    # --- delete ---

    def delete(self, person_id: str, entry_id: str) -> None:
        """Unconditional delete; a missing key is not an error."""
        key = _require_key(person_id, entry_id, operation="DeleteItem")
        try:
            self._table.delete_item(key=key)
        except DdbError as e:
            log.error("record_delete_failed", person_id=key["PersonId"], entry_id=key["EntryId"], error=str(e))
            raise
        log.info("record_deleted", person_id=key["PersonId"], entry_id=key["EntryId"])

    def batch_delete(self, entries: Iterable[RecordKey | Mapping[str, Any]]) -> int:
        """Delete many keys in chunks. Not transactional: earlier chunks stay deleted."""
        items = list(entries or [])
        if not items:
            raise DdbValidation(message="At least one record is required", operation="BatchWriteItem")

        keys: list[dict[str, str]] = []
        for i, entry in enumerate(items):
            key = _key_of(entry)
            if key is None:
                raise DdbValidation(
                    message=f"Record at index {i} is missing required PersonId or EntryId",
                    operation="BatchWriteItem",
                )
            keys.append(key)

        try:
            deleted = self._table.batch_delete(keys=keys, chunk_size=self._batch_size)
        except DdbError as e:
            log.error("records_batch_delete_failed", requested=len(keys), error=str(e))
            raise
        log.info("records_batch_deleted", deleted=deleted)
        return deleted

    # --- update ---

    def update_processed_status(self, person_id: str, entry_id: str, is_processed: bool) -> Record:
        key = _require_key(person_id, entry_id, operation="UpdateItem")
        if not isinstance(is_processed, bool):
            raise DdbValidation(message="isProcessed must be a boolean", operation="UpdateItem", key=key)

        try:
            attrs = self._table.update_item(
                key=key,
                update_expression="SET #p = :p, #u = :u",
                expression_attribute_names={"#p": "IsProcessed", "#u": "UpdatedDateTime"},
                expression_attribute_values={":p": is_processed, ":u": now_iso(self._clock())},
                condition_expression=Attr("PersonId").exists(),
            )
        except DdbConflict as e:
            raise DdbNotFound(
                message="Record not found",
                operation="UpdateItem",
                table_name=self.table_name,
                key=key,
                cause=e,
            ) from e
        except DdbError as e:
            log.error("record_status_update_failed", error=str(e), **key)
            raise

        if not attrs:
            raise DdbNotFound(message="Record not found", operation="UpdateItem", table_name=self.table_name, key=key)

        record = Record.from_item(attrs)
        log.info(
            "record_status_updated",
            person_id=record.PersonId,
            entry_id=record.EntryId,
            is_processed=record.IsProcessed,
        )
        return record

    # --- search ---

    def search_by_person_id(self, person_id: str) -> list[Record]:
        """Exact PersonId match via a full table scan (no index, no pagination)."""
        value = str(person_id or "").strip()
        if not value:
            raise DdbValidation(message="personId is required", operation="Scan")

        try:
            items = self._table.scan_all(filter_expression=Attr("PersonId").eq(value))
        except DdbError as e:
            log.error("records_search_failed", person_id=value, error=str(e))
            raise

        records = [Record.from_item(it) for it in items]
        log.info("records_searched", person_id=value, count=len(records))
        return records
