from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from ...settings import Settings
from .client import table_resource
from .errors import DdbInternal, DdbUnavailable
from .pagination import encode_next_token
from .retry import RetryPolicy, ddb_call

# BatchWriteItem accepts at most 25 requests per call.
MAX_BATCH_WRITE_ITEMS = 25


@dataclass(slots=True)
class Page:
    items: list[dict[str, Any]]
    last_evaluated_key: dict[str, Any] | None = None

    @property
    def next_token(self) -> str | None:
        return encode_next_token(self.last_evaluated_key)


def chunked(seq: list[Any], size: int) -> Iterable[list[Any]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


class DynamoTable:
    """Thin wrapper over a boto3 Table resource.

    The underlying resource is injected (or built from settings) once; every
    method is a single round trip routed through `ddb_call` for error mapping.
    """

    def __init__(
        self,
        *,
        table_name: str,
        table: Any | None = None,
        settings: Settings | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.table_name = str(table_name)
        if table is None:
            if settings is None:
                raise DdbInternal(message="DynamoTable needs a table resource or settings", operation="Config")
            table = table_resource(self.table_name, settings)
        self._table = table
        self._retry = retry_policy or RetryPolicy()

    def _call(self, operation: str, fn, *, key: dict[str, Any] | None = None):
        return ddb_call(operation, fn, table_name=self.table_name, key=key, retry_policy=self._retry)

    # --- basic operations ---

    def put_item(self, *, item: dict[str, Any]) -> dict[str, Any]:
        """Unconditional write; an existing item with the same key is replaced."""

        def _op():
            return self._table.put_item(Item=item)

        key = {k: item.get(k) for k in ("PersonId", "EntryId")}
        return self._call("PutItem", _op, key=key)

    def delete_item(self, *, key: dict[str, Any]) -> dict[str, Any]:
        def _op():
            return self._table.delete_item(Key=key)

        return self._call("DeleteItem", _op, key=key)

    def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any],
        condition_expression: Any | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        def _op():
            kwargs: dict[str, Any] = {
                "Key": key,
                "UpdateExpression": update_expression,
                "ExpressionAttributeValues": expression_attribute_values,
                "ReturnValues": return_values,
            }
            if expression_attribute_names:
                kwargs["ExpressionAttributeNames"] = expression_attribute_names
            if condition_expression is not None:
                kwargs["ConditionExpression"] = condition_expression
            resp = self._table.update_item(**kwargs)
            return resp.get("Attributes")

        return self._call("UpdateItem", _op, key=key)

    # --- query/scan ---

    def query_page(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        limit: int = 50,
        scan_index_forward: bool = False,
        filter_expression: Any | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
    ) -> Page:
        lim = max(1, int(limit or 1))

        def _op():
            kwargs: dict[str, Any] = {
                "KeyConditionExpression": key_condition_expression,
                "ScanIndexForward": bool(scan_index_forward),
                "Limit": lim,
            }
            if index_name:
                kwargs["IndexName"] = index_name
            if filter_expression is not None:
                kwargs["FilterExpression"] = filter_expression
            # Important: only pass ExclusiveStartKey when present.
            if exclusive_start_key:
                kwargs["ExclusiveStartKey"] = exclusive_start_key
            return self._table.query(**kwargs)

        resp = self._call("Query", _op)
        return Page(
            items=list(resp.get("Items") or []),
            last_evaluated_key=resp.get("LastEvaluatedKey") or None,
        )

    def scan_all(self, *, filter_expression: Any | None = None) -> list[dict[str, Any]]:
        """Scan the whole table, following LastEvaluatedKey until exhausted."""
        out: list[dict[str, Any]] = []
        start_key: dict[str, Any] | None = None
        while True:

            def _op(start_key=start_key):
                kwargs: dict[str, Any] = {}
                if filter_expression is not None:
                    kwargs["FilterExpression"] = filter_expression
                if start_key:
                    kwargs["ExclusiveStartKey"] = start_key
                return self._table.scan(**kwargs)

            resp = self._call("Scan", _op)
            out.extend(resp.get("Items") or [])
            start_key = resp.get("LastEvaluatedKey") or None
            if not start_key:
                return out

    # --- batch writes ---

    def batch_delete(self, *, keys: list[dict[str, Any]], chunk_size: int = MAX_BATCH_WRITE_ITEMS) -> int:
        """Delete keys with one BatchWriteItem per chunk, sequentially.

        The first failing chunk aborts the run; earlier chunks stay deleted.
        Unprocessed items reported by DynamoDB count as a failure of their chunk.
        """
        size = max(1, min(MAX_BATCH_WRITE_ITEMS, int(chunk_size)))
        client = self._table.meta.client
        deleted = 0
        for chunk in chunked(list(keys), size):
            requests = [{"DeleteRequest": {"Key": k}} for k in chunk]

            def _op(requests=requests):
                return client.batch_write_item(RequestItems={self.table_name: requests})

            resp = self._call("BatchWriteItem", _op)
            unprocessed = (resp.get("UnprocessedItems") or {}).get(self.table_name) or []
            if unprocessed:
                raise DdbUnavailable(
                    message=f"DynamoDB left {len(unprocessed)} of {len(requests)} deletes unprocessed",
                    operation="BatchWriteItem",
                    table_name=self.table_name,
                    retryable=True,
                )
            deleted += len(chunk)
        return deleted
