from __future__ import annotations

import pytest
from botocore.exceptions import EndpointConnectionError

from fake_dynamodb import client_error

import hcm_admin.db.dynamodb.retry as retry_mod
from hcm_admin.db.dynamodb.errors import (
    DdbConflict,
    DdbInternal,
    DdbThrottled,
    DdbUnavailable,
    DdbValidation,
)
from hcm_admin.db.dynamodb.retry import RetryPolicy, ddb_call, map_botocore_error
from hcm_admin.db.dynamodb.table import DynamoTable


@pytest.mark.parametrize(
    "code,expected,retryable",
    [
        ("ConditionalCheckFailedException", DdbConflict, False),
        ("ValidationException", DdbValidation, False),
        ("ResourceNotFoundException", DdbUnavailable, False),
        ("AccessDeniedException", DdbUnavailable, False),
        ("ProvisionedThroughputExceededException", DdbThrottled, True),
        ("ThrottlingException", DdbThrottled, True),
        ("SomethingNew", DdbInternal, False),
    ],
)
def test_client_errors_are_mapped(code, expected, retryable):
    err = map_botocore_error(
        operation="Query",
        table_name="testTable",
        key=None,
        exc=client_error(code, "Query", "boom"),
    )
    assert type(err) is expected
    assert err.retryable is retryable
    assert err.operation == "Query"
    assert err.table_name == "testTable"
    assert err.aws_request_id == "req-fake"
    assert str(err).endswith(": boom")


def test_validation_message_keeps_the_aws_detail():
    err = map_botocore_error(
        operation="Query",
        table_name="t",
        key=None,
        exc=client_error("ValidationException", "Query", "The provided starting key is invalid"),
    )
    assert "The provided starting key is invalid" in str(err)
    assert err.status_code == 400


def test_connection_errors_are_unavailable():
    err = map_botocore_error(
        operation="Scan",
        table_name="t",
        key=None,
        exc=EndpointConnectionError(endpoint_url="http://localhost:8000"),
    )
    assert isinstance(err, DdbUnavailable)
    assert err.retryable is True


def test_default_policy_makes_a_single_attempt(monkeypatch):
    monkeypatch.setattr(retry_mod.time, "sleep", lambda s: None)
    calls = {"n": 0}

    def op():
        calls["n"] += 1
        raise client_error("ThrottlingException", "Query")

    with pytest.raises(DdbThrottled) as ei:
        ddb_call("Query", op, table_name="t")
    assert calls["n"] == 1
    assert ei.value.__cause__ is not None


def test_retryable_errors_are_retried_when_allowed(monkeypatch):
    sleeps: list[float] = []
    monkeypatch.setattr(retry_mod.time, "sleep", sleeps.append)
    calls = {"n": 0}

    def op():
        calls["n"] += 1
        if calls["n"] < 3:
            raise client_error("ProvisionedThroughputExceededException", "PutItem")
        return "ok"

    assert ddb_call("PutItem", op, retry_policy=RetryPolicy(max_attempts=3)) == "ok"
    assert calls["n"] == 3
    assert len(sleeps) == 2


def test_non_retryable_errors_are_never_retried(monkeypatch):
    monkeypatch.setattr(retry_mod.time, "sleep", lambda s: None)
    calls = {"n": 0}

    def op():
        calls["n"] += 1
        raise client_error("ConditionalCheckFailedException", "UpdateItem")

    with pytest.raises(DdbConflict):
        ddb_call("UpdateItem", op, retry_policy=RetryPolicy(max_attempts=5))
    assert calls["n"] == 1


def test_ddb_errors_raised_inside_a_call_pass_through():
    original = DdbValidation(message="nope", operation="Query")

    def op():
        raise original

    with pytest.raises(DdbValidation) as ei:
        ddb_call("Query", op)
    assert ei.value is original


class _UnprocessedClient:
    def batch_write_item(self, RequestItems):
        name, requests = next(iter(RequestItems.items()))
        return {"UnprocessedItems": {name: requests[:1]}}


class _Meta:
    client = _UnprocessedClient()


class _Table:
    meta = _Meta()


def test_unprocessed_batch_items_fail_the_chunk():
    table = DynamoTable(table_name="t", table=_Table())
    with pytest.raises(DdbUnavailable) as ei:
        table.batch_delete(keys=[{"PersonId": "1", "EntryId": "e"}, {"PersonId": "2", "EntryId": "f"}])
    assert "1 of 2" in str(ei.value)
