from __future__ import annotations

from fastapi.testclient import TestClient

from hcm_admin.main import create_app
from hcm_admin.settings import Settings


def test_request_id_is_generated_and_returned(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "X-Request-Id" in r.headers
    assert r.headers["X-Request-Id"]


def test_request_id_is_propagated_from_client(client):
    r = client.get("/", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 200
    assert r.headers.get("X-Request-Id") == "abc-123"


def test_unsafe_request_id_is_replaced(client):
    r = client.get("/", headers={"X-Request-Id": "bad id with spaces"})
    assert r.headers["X-Request-Id"] != "bad id with spaces"


def test_validation_errors_are_problem_json(client):
    r = client.post("/api/records", json={})
    assert r.status_code == 400
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["title"] == "Validation Failed"
    assert body["status"] == 400
    assert "errors" in body and isinstance(body["errors"], list)
    assert body.get("requestId")


def test_404_is_problem_json(client):
    r = client.get("/this-route-does-not-exist")
    assert r.status_code == 404
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["status"] == 404
    assert body["detail"] == "Route not found"
    assert body.get("requestId")


def test_production_hides_server_error_detail(store, fake_table, monkeypatch):
    from fake_dynamodb import client_error

    from hcm_admin.auth.cognito import VerifiedUser
    from hcm_admin.middleware import auth as auth_mw

    user = VerifiedUser(sub="user-1", username="alice", email=None, claims={})
    monkeypatch.setattr(auth_mw, "verify_bearer_token", lambda token, settings: user)
    fake_table.fail_next("Query", client_error("InternalFailure", "Query", "secret detail"))

    settings = Settings(NODE_ENV="production", TABLE_NAME="testTable")
    client = TestClient(create_app(settings=settings, store=store))
    r = client.get("/api/records", headers={"Authorization": "Bearer x"})

    assert r.status_code == 500
    body = r.json()
    assert body["title"] == "Storage Error"
    assert "detail" not in body
    assert "extensions" not in body
