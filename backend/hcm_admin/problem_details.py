"""
RFC7807 `application/problem+json` rendering.

Every error leaving the API (validation, auth, storage, unmatched routes) is
shaped here so clients see one envelope: `type`, `title`, `status`, optional
`detail`, plus `instance` and `requestId` for correlating with the logs.
"""

from __future__ import annotations

from typing import Any, Iterable

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .db.dynamodb.errors import DdbError

PROBLEM_JSON = "application/problem+json"

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
}


def title_for(status_code: int) -> str:
    if status_code >= 500:
        return "Internal Server Error"
    return _TITLES.get(status_code, "Error")


def _request_id(request: Request) -> str | None:
    state_rid = getattr(request.state, "request_id", None)
    rid = state_rid or request.headers.get("x-request-id")
    return str(rid) if rid else None


def _hide_internals(request: Request, status_code: int) -> bool:
    if status_code < 500:
        return False
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_production)


def problem_payload(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    type: str = "about:blank",
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> dict[str, Any]:
    status = int(status_code)
    body: dict[str, Any] = {"type": type or "about:blank", "title": title or title_for(status), "status": status}

    optional = {
        "detail": str(detail) if detail else None,
        "instance": request.url.path or None,
        "requestId": _request_id(request),
        "errors": errors or None,
        # Extension members stay namespaced so they never shadow reserved keys.
        "extensions": extensions or None,
    }
    body.update({k: v for k, v in optional.items() if v is not None})
    return body


def problem_response(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    type: str = "about:blank",
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> ORJSONResponse:
    status = int(status_code)
    if _hide_internals(request, status):
        detail, extensions = None, None

    payload = problem_payload(
        request=request,
        status_code=status,
        title=title,
        detail=detail,
        type=type,
        errors=errors,
        extensions=extensions,
    )
    return ORJSONResponse(status_code=status, content=payload, media_type=PROBLEM_JSON)


def storage_error_extensions(exc: DdbError) -> dict[str, Any]:
    """Operation context of a storage error, without empty members."""
    ext = {
        "operation": exc.operation,
        "table": exc.table_name,
        "key": exc.key,
        "awsRequestId": exc.aws_request_id,
        "retryable": bool(exc.retryable),
    }
    return {k: v for k, v in ext.items() if v is not None}


def field_errors(raw_errors: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten pydantic error dicts into `{path, message, type}` entries."""
    out: list[dict[str, Any]] = []
    for err in raw_errors:
        loc = tuple(err.get("loc") or ())
        out.append(
            {
                "location": list(loc),
                "path": ".".join(str(part) for part in loc if part not in ("body", "query")),
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )
    return out
