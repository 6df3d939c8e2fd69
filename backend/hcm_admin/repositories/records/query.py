"""
Sorted and filtered listing over the PublishedIndex GSI.

DynamoDB applies `Limit` to the items it reads *before* the FilterExpression
runs, so a filtered query with `Limit=n` can come back with far fewer than `n`
matches. Filtered listing compensates by over-fetching (`limit * factor`) in a
single round trip, truncating to `limit`, and deriving the continuation token
from the last item actually returned whenever truncation happened. Forwarding
DynamoDB's own LastEvaluatedKey after truncation would silently skip the
matches between the truncation point and the scan boundary.

Highly selective filters can still under-fill a page while returning a
`nextToken`; callers page forward to see the rest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import reduce
from operator import and_
from typing import Any

from boto3.dynamodb.conditions import Attr, ConditionBase, Key

from ...db.dynamodb.errors import DdbValidation
from ...db.dynamodb.pagination import decode_next_token, encode_next_token
from ...db.dynamodb.table import DynamoTable
from ...observability.logging import get_logger
from .models import CONSTANT_KEY, Record

PUBLISHED_INDEX = "PublishedIndex"
DEFAULT_OVERFETCH_FACTOR = 20

log = get_logger("records.query")


def parse_status(raw: str | bool | None) -> bool | None:
    """`"true"`/`"false"` (any case) to bool; blank means no status filter."""
    if raw is None or isinstance(raw, bool):
        return raw
    v = str(raw).strip().lower()
    if not v:
        return None
    if v == "true":
        return True
    if v == "false":
        return False
    raise DdbValidation(message="status must be 'true' or 'false'", operation="Query")


def _clean(v: str | None) -> str | None:
    s = str(v).strip() if v is not None else ""
    return s or None


@dataclass(frozen=True, slots=True)
class RecordFilters:
    feed: str | None = None
    operation: str | None = None
    status: bool | None = None
    worker: str | None = None

    @classmethod
    def from_params(
        cls,
        *,
        feed: str | None = None,
        operation: str | None = None,
        status: str | bool | None = None,
        worker: str | None = None,
    ) -> "RecordFilters":
        return cls(
            feed=_clean(feed),
            operation=_clean(operation),
            status=parse_status(status),
            worker=_clean(worker),
        )

    def conditions(self) -> list[ConditionBase]:
        out: list[ConditionBase] = []
        if self.feed is not None:
            out.append(Attr("Feed").eq(self.feed))
        if self.operation is not None:
            out.append(Attr("DMLOperation").eq(self.operation))
        if self.status is not None:
            out.append(Attr("IsProcessed").eq(self.status))
        if self.worker is not None:
            out.append(Attr("WorkerType").eq(self.worker))
        return out

    def expression(self) -> ConditionBase | None:
        """AND of the supplied filters only; None when nothing was supplied."""
        conds = self.conditions()
        if not conds:
            return None
        return reduce(and_, conds)

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "feed": self.feed,
            "operation": self.operation,
            "status": self.status,
            "worker": self.worker,
        }


@dataclass(slots=True)
class RecordPage:
    items: list[Record] = field(default_factory=list)
    next_token: str | None = None

    @property
    def count(self) -> int:
        return len(self.items)

    def to_response(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "items": [r.to_item() for r in self.items],
            "count": self.count,
        }
        if self.next_token:
            out["nextToken"] = self.next_token
        return out


class RecordQueryEngine:
    def __init__(
        self,
        table: DynamoTable,
        *,
        index_name: str = PUBLISHED_INDEX,
        overfetch_factor: int = DEFAULT_OVERFETCH_FACTOR,
    ):
        self._table = table
        self.index_name = index_name
        self.overfetch_factor = max(1, int(overfetch_factor))

    @staticmethod
    def key_condition() -> ConditionBase:
        return Key("ConstantKey").eq(CONSTANT_KEY)

    @staticmethod
    def _check_limit(limit: int) -> int:
        lim = int(limit)
        if lim < 1:
            raise DdbValidation(message="limit must be a positive integer", operation="Query")
        return lim

    def sorted_page(self, *, limit: int, next_token: str | None = None) -> RecordPage:
        """Newest-first page of all records."""
        lim = self._check_limit(limit)
        start_key = decode_next_token(next_token)

        page = self._table.query_page(
            index_name=self.index_name,
            key_condition_expression=self.key_condition(),
            scan_index_forward=False,
            limit=lim,
            exclusive_start_key=start_key,
        )
        items = [Record.from_item(it) for it in page.items]
        return RecordPage(items=items, next_token=page.next_token)

    def filtered_page(
        self,
        *,
        filters: RecordFilters,
        limit: int,
        next_token: str | None = None,
    ) -> RecordPage:
        """Newest-first page of records matching every supplied filter."""
        lim = self._check_limit(limit)
        start_key = decode_next_token(next_token)
        internal_limit = lim * self.overfetch_factor

        page = self._table.query_page(
            index_name=self.index_name,
            key_condition_expression=self.key_condition(),
            scan_index_forward=False,
            limit=internal_limit,
            filter_expression=filters.expression(),
            exclusive_start_key=start_key,
        )

        matched = [Record.from_item(it) for it in page.items]
        visible = matched[:lim]

        token: str | None = None
        if len(matched) > lim:
            # Truncated client-side: resume right after the last returned item.
            token = encode_next_token(visible[-1].index_key())
        elif page.last_evaluated_key:
            token = encode_next_token(page.last_evaluated_key)

        log.debug(
            "records_filter_query",
            filters=filters.to_log_dict(),
            limit=lim,
            internal_limit=internal_limit,
            matched=len(matched),
            returned=len(visible),
            truncated=len(matched) > lim,
        )
        return RecordPage(items=visible, next_token=token)
