from __future__ import annotations

from .access_log import AccessLogMiddleware
from .auth import DOCS_PREFIX, AuthMiddleware
from .normalize_path import NormalizePathMiddleware
from .request_context import RequestContextMiddleware

__all__ = [
    "DOCS_PREFIX",
    "AccessLogMiddleware",
    "AuthMiddleware",
    "NormalizePathMiddleware",
    "RequestContextMiddleware",
]
