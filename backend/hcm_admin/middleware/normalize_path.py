from __future__ import annotations

from typing import Any, Awaitable, Callable


class NormalizePathMiddleware:
    """
    Strip a trailing slash from API paths instead of redirecting.

    The app runs with `redirect_slashes=False`; clients that append a slash
    (e.g. `/api/records/`) are routed as if they had not.
    """

    def __init__(self, app: Callable[..., Awaitable[Any]]):
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        if scope.get("type") == "http":
            path = str(scope.get("path") or "")
            if path.startswith("/api/") and path.endswith("/"):
                new_path = path.rstrip("/")
                scope["path"] = new_path
                # Route matching uses scope["path"]; keep raw_path consistent.
                if isinstance(scope.get("raw_path"), (bytes, bytearray)):
                    scope["raw_path"] = new_path.encode("utf-8")
        return await self.app(scope, receive, send)
