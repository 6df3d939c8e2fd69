from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool

ENTRY_ID_PREFIX = "urn:uuid:"
ENTRY_ID_PATTERN = r"^urn:uuid:[A-F0-9]{32}$"

# Fixed partition key of the PublishedIndex GSI: every record lands in the
# same index partition so the index orders the whole table by time.
CONSTANT_KEY = "Constant"

DmlOperation = Literal["INSERT", "UPDATE", "DELETE"]


def generate_entry_id() -> str:
    """`urn:uuid:` + 32 uppercase hex chars (128 random bits, no hyphens)."""
    return ENTRY_ID_PREFIX + uuid.uuid4().hex.upper()


def now_iso(now: datetime | None = None) -> str:
    dt = now or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RecordCreate(BaseModel):
    """Caller-supplied fields of a new record. Server-managed fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    PersonId: str = Field(..., min_length=1)
    Feed: str = Field(..., min_length=1)
    DMLOperation: DmlOperation
    IsProcessed: StrictBool
    WorkerType: str = Field(..., min_length=1)
    ProcessedMessage: str = Field(..., min_length=1)
    EntryId: str | None = Field(default=None, pattern=ENTRY_ID_PATTERN)


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")

    PersonId: str
    EntryId: str
    Feed: str
    DMLOperation: str
    IsProcessed: bool
    WorkerType: str
    ProcessedMessage: str
    ConstantKey: Literal["Constant"] = CONSTANT_KEY
    PublishedDateTime: str
    UpdatedDateTime: str

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "Record":
        return cls.model_validate(item)

    def to_item(self) -> dict[str, Any]:
        return self.model_dump()

    def index_key(self) -> dict[str, Any]:
        """Start key for resuming a PublishedIndex query right after this record."""
        return {
            "ConstantKey": self.ConstantKey,
            "PublishedDateTime": self.PublishedDateTime,
            "PersonId": self.PersonId,
            "EntryId": self.EntryId,
        }


class RecordKey(BaseModel):
    model_config = ConfigDict(extra="forbid")

    personId: str = Field(..., min_length=1)
    entryId: str = Field(..., pattern=ENTRY_ID_PATTERN)

    def to_key(self) -> dict[str, str]:
        return {"PersonId": self.personId, "EntryId": self.entryId}
