"""
In-memory stand-in for a boto3 DynamoDB Table resource, shaped like the feed
records table: primary key (PersonId, EntryId) and the PublishedIndex GSI on
(ConstantKey, PublishedDateTime).

Query semantics follow DynamoDB where the code under test depends on them:
`Limit` caps the items *read*, the FilterExpression runs afterwards, and a
LastEvaluatedKey is returned whenever the read stopped at `Limit`.
"""

from __future__ import annotations

import copy
from typing import Any

from botocore.exceptions import ClientError

_MISSING = object()


def evaluate(condition: Any, item: dict[str, Any]) -> bool:
    """Evaluate a boto3 `conditions` object against a plain item."""
    expr = condition.get_expression()
    op = expr["operator"]
    values = expr["values"]

    if op == "AND":
        return all(evaluate(v, item) for v in values)
    if op == "OR":
        return any(evaluate(v, item) for v in values)
    if op == "NOT":
        return not evaluate(values[0], item)
    if op == "=":
        return item.get(values[0].name, _MISSING) == values[1]
    if op == "attribute_exists":
        return values[0].name in item
    if op == "attribute_not_exists":
        return values[0].name not in item
    raise NotImplementedError(f"fake DynamoDB does not support operator {op!r}")


def client_error(code: str, operation: str, message: str = "fake failure") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"RequestId": "req-fake"}},
        operation,
    )


def _primary(item: dict[str, Any]) -> tuple[str, str]:
    return (item["PersonId"], item["EntryId"])


def _index_order(item: dict[str, Any]) -> tuple[str, str, str]:
    return (item["PublishedDateTime"], item["PersonId"], item["EntryId"])


class FakeDynamoClient:
    def __init__(self, tables: dict[str, "FakeTable"]):
        self._tables = tables
        self.batch_calls: list[int] = []

    def batch_write_item(self, RequestItems: dict[str, list[dict[str, Any]]]):
        for name, requests in RequestItems.items():
            table = self._tables[name]
            table.maybe_fail("BatchWriteItem")
            if len(requests) > 25:
                raise client_error("ValidationException", "BatchWriteItem", "Too many items requested")
            self.batch_calls.append(len(requests))
            for req in requests:
                table.items.pop(_primary(req["DeleteRequest"]["Key"]), None)
        return {"UnprocessedItems": {}}


class _Meta:
    def __init__(self, client: FakeDynamoClient):
        self.client = client


class FakeTable:
    def __init__(self, name: str = "testTable", *, scan_page_size: int = 1000):
        self.name = name
        self.items: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.scan_page_size = scan_page_size
        self.meta = _Meta(FakeDynamoClient({name: self}))

    # --- test helpers ---

    def fail_next(self, operation: str, exc: Exception) -> None:
        self.failures.setdefault(operation, []).append(exc)

    def maybe_fail(self, operation: str) -> None:
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    # --- Table API ---

    def put_item(self, Item: dict[str, Any]):
        self.calls.append(("put_item", {"Item": Item}))
        self.maybe_fail("PutItem")
        self.items[_primary(Item)] = copy.deepcopy(Item)
        return {}

    def delete_item(self, Key: dict[str, Any]):
        self.calls.append(("delete_item", {"Key": Key}))
        self.maybe_fail("DeleteItem")
        self.items.pop(_primary(Key), None)
        return {}

    def update_item(
        self,
        Key: dict[str, Any],
        UpdateExpression: str,
        ExpressionAttributeValues: dict[str, Any],
        ReturnValues: str = "NONE",
        ExpressionAttributeNames: dict[str, str] | None = None,
        ConditionExpression: Any = None,
    ):
        self.calls.append(("update_item", {"Key": Key, "UpdateExpression": UpdateExpression}))
        self.maybe_fail("UpdateItem")
        existing = self.items.get(_primary(Key))
        if ConditionExpression is not None and not evaluate(ConditionExpression, existing or {}):
            raise client_error("ConditionalCheckFailedException", "UpdateItem", "The conditional request failed")

        names = ExpressionAttributeNames or {}
        item = dict(existing or Key)
        assert UpdateExpression.startswith("SET "), "fake only supports SET updates"
        for assignment in UpdateExpression[4:].split(","):
            lhs, rhs = (p.strip() for p in assignment.split("="))
            item[names.get(lhs, lhs)] = ExpressionAttributeValues[rhs]
        self.items[_primary(Key)] = item

        if ReturnValues == "ALL_NEW":
            return {"Attributes": copy.deepcopy(item)}
        return {}

    def query(
        self,
        KeyConditionExpression: Any,
        IndexName: str | None = None,
        ScanIndexForward: bool = True,
        Limit: int | None = None,
        FilterExpression: Any = None,
        ExclusiveStartKey: dict[str, Any] | None = None,
    ):
        self.calls.append(
            (
                "query",
                {
                    "IndexName": IndexName,
                    "KeyConditionExpression": KeyConditionExpression,
                    "ScanIndexForward": ScanIndexForward,
                    "Limit": Limit,
                    "FilterExpression": FilterExpression,
                    "ExclusiveStartKey": ExclusiveStartKey,
                },
            )
        )
        self.maybe_fail("Query")
        if IndexName != "PublishedIndex":
            raise client_error("ValidationException", "Query", f"unknown index {IndexName}")

        candidates = [it for it in self.items.values() if evaluate(KeyConditionExpression, it)]
        candidates.sort(key=_index_order, reverse=not ScanIndexForward)

        if ExclusiveStartKey:
            missing = {"ConstantKey", "PublishedDateTime", "PersonId", "EntryId"} - set(ExclusiveStartKey)
            if missing:
                raise client_error("ValidationException", "Query", "The provided starting key is invalid")
            start = _index_order(ExclusiveStartKey)
            if ScanIndexForward:
                candidates = [it for it in candidates if _index_order(it) > start]
            else:
                candidates = [it for it in candidates if _index_order(it) < start]

        read = candidates[:Limit] if Limit else candidates
        matched = [it for it in read if FilterExpression is None or evaluate(FilterExpression, it)]

        resp: dict[str, Any] = {
            "Items": [copy.deepcopy(it) for it in matched],
            "Count": len(matched),
            "ScannedCount": len(read),
        }
        if Limit and len(read) == Limit:
            last = read[-1]
            resp["LastEvaluatedKey"] = {
                "ConstantKey": last["ConstantKey"],
                "PublishedDateTime": last["PublishedDateTime"],
                "PersonId": last["PersonId"],
                "EntryId": last["EntryId"],
            }
        return resp

    def scan(self, FilterExpression: Any = None, ExclusiveStartKey: dict[str, Any] | None = None):
        self.calls.append(("scan", {"FilterExpression": FilterExpression, "ExclusiveStartKey": ExclusiveStartKey}))
        self.maybe_fail("Scan")
        ordered = sorted(self.items.values(), key=_primary)
        if ExclusiveStartKey:
            start = _primary(ExclusiveStartKey)
            ordered = [it for it in ordered if _primary(it) > start]

        read = ordered[: self.scan_page_size]
        matched = [it for it in read if FilterExpression is None or evaluate(FilterExpression, it)]
        resp: dict[str, Any] = {"Items": [copy.deepcopy(it) for it in matched], "Count": len(matched)}
        if len(ordered) > len(read):
            last = read[-1]
            resp["LastEvaluatedKey"] = {"PersonId": last["PersonId"], "EntryId": last["EntryId"]}
        return resp
