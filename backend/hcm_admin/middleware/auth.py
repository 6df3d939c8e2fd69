from __future__ import annotations

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.cognito import CognitoAuthError, verify_bearer_token
from ..observability.logging import get_logger
from ..problem_details import problem_response

SWAGGER_COOKIE = "swagger_token"
DOCS_PREFIX = "/api-docs"

_PUBLIC_PATHS = {
    "/api/info",
    "/api/environment",
    "/api/config/table-name",
    "/api/auth/verify-token",
    "/api/auth/logout",
}


def is_public_path(path: str) -> bool:
    return path in _PUBLIC_PATHS


def is_protected_path(path: str) -> bool:
    if path == DOCS_PREFIX or path.startswith(DOCS_PREFIX + "/"):
        return True
    return path.startswith("/api/") and not is_public_path(path)


def extract_token(request: Request) -> str | None:
    """Bearer header first, then the Swagger UI session cookie."""
    auth = request.headers.get("authorization")
    if auth:
        parts = str(auth).split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise HTTPException(status_code=401, detail="Unauthorized: Malformed Authorization header")
        return parts[1].strip()
    cookie = request.cookies.get(SWAGGER_COOKIE)
    return str(cookie).strip() if cookie else None


async def require_auth(request: Request):
    # Let CORS preflight through without auth.
    if request.method.upper() == "OPTIONS":
        return

    if not is_protected_path(request.url.path):
        return

    settings = request.app.state.settings
    token = extract_token(request)
    if not token and not settings.auth_disabled:
        raise HTTPException(status_code=401, detail="Unauthorized: No token provided")

    try:
        user = verify_bearer_token(token or "", settings)
    except CognitoAuthError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e

    request.state.user = user


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Auth enforcement as ASGI middleware.

    Must be added *before* CORSMiddleware so CORS wraps all responses
    (including auth failures) and preflight works.
    """

    async def dispatch(self, request: Request, call_next):
        log = get_logger("auth_middleware")
        try:
            await require_auth(request)
        except HTTPException as exc:
            status_code = int(exc.status_code)
            # Log auth failures (avoid PII)
            if status_code >= 500:
                log.error("auth_middleware_error", status_code=status_code, path=request.url.path, reason=exc.detail)
            else:
                log.info("auth_middleware_denied", status_code=status_code, path=request.url.path)
            return problem_response(
                request=request,
                status_code=status_code,
                title="Unauthorized" if status_code == 401 else None,
                detail=str(exc.detail) if isinstance(exc.detail, str) else None,
            )
        return await call_next(request)
