from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .db.dynamodb.errors import DdbError
from .db.dynamodb.retry import RetryPolicy
from .db.dynamodb.table import DynamoTable
from .middleware import (
    DOCS_PREFIX,
    AccessLogMiddleware,
    AuthMiddleware,
    NormalizePathMiddleware,
    RequestContextMiddleware,
)
from .middleware.cors import build_allowed_origins
from .observability.logging import configure_logging, get_logger
from .problem_details import field_errors, problem_response, storage_error_extensions
from .repositories.records.query import RecordQueryEngine
from .repositories.records.records_repo import RecordStore
from .routers.admin import router as admin_router
from .routers.auth import router as auth_router
from .routers.health import router as health_router
from .routers.info import router as info_router
from .routers.records import router as records_router
from .settings import Settings, get_settings


def build_record_store(settings: Settings) -> RecordStore | None:
    if not settings.ddb_table_name:
        return None
    table = DynamoTable(
        table_name=settings.ddb_table_name,
        settings=settings,
        retry_policy=RetryPolicy(max_attempts=settings.ddb_max_attempts),
    )
    engine = RecordQueryEngine(
        table,
        index_name=settings.ddb_published_index,
        overfetch_factor=settings.filter_overfetch_factor,
    )
    return RecordStore(table, query_engine=engine)


def create_app(settings: Settings | None = None, store: RecordStore | None = None) -> FastAPI:
    settings = settings or get_settings()

    # Logging must be configured before the app starts handling requests.
    configure_logging(level=settings.log_level)
    log = get_logger("startup")

    app = FastAPI(
        title="HCM Feed Records Admin API",
        version=settings.app_version,
        description=settings.app_description,
        default_response_class=ORJSONResponse,
        docs_url=DOCS_PREFIX,
        openapi_url=f"{DOCS_PREFIX}/openapi.json",
        redoc_url=None,
        # No 307/308 redirects between /path and /path/; see NormalizePathMiddleware.
        redirect_slashes=False,
    )

    app.state.settings = settings
    app.state.record_store = store if store is not None else build_record_store(settings)

    log.info("app_starting", settings=settings.to_log_safe_dict())
    if app.state.record_store is None:
        log.warning("record_store_unconfigured", reason="TABLE_NAME is not set")

    # Middlewares (order matters; last added is outermost)
    # Auth runs inside CORS so auth failures still get CORS headers.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=build_allowed_origins(
            frontend_url=settings.frontend_url,
            frontend_urls=settings.frontend_urls,
        ),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=3000,
    )
    app.add_middleware(RequestContextMiddleware)
    # Outermost: path rewrite happens before anything inspects the path.
    app.add_middleware(NormalizePathMiddleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DdbError, _ddb_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    # Routes
    app.include_router(health_router)
    app.include_router(records_router, prefix="/api/records")
    app.include_router(info_router, prefix="/api")
    app.include_router(admin_router, prefix="/api/admin")
    app.include_router(auth_router, prefix="/api/auth")

    return app


def _ddb_error_handler(request: Request, exc: DdbError) -> Response:
    status_code = int(exc.status_code)
    if status_code >= 500:
        get_logger("ddb").error(
            "storage_error",
            error=str(exc),
            operation=exc.operation,
            table=exc.table_name,
            aws_request_id=exc.aws_request_id,
            cause=repr(exc.cause) if exc.cause else None,
        )
    return problem_response(
        request=request,
        status_code=status_code,
        title=exc.title,
        detail=exc.message,
        extensions=storage_error_extensions(exc),
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(exc.status_code or 500)
    detail = exc.detail

    extensions: dict | None = None
    message: str | None = None
    if isinstance(detail, dict):
        extensions = detail
        msg = detail.get("message")
        message = msg.strip() if isinstance(msg, str) and msg.strip() else None
    elif detail is not None:
        message = str(detail)

    if status_code == 404 and message in (None, "Not Found"):
        message = "Route not found"

    return problem_response(request=request, status_code=status_code, detail=message, extensions=extensions)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    return problem_response(
        request=request,
        status_code=400,
        title="Validation Failed",
        detail="Request validation failed",
        errors=field_errors(exc.errors()),
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    # Full traceback goes to the logs; the response stays generic in production.
    user = getattr(request.state, "user", None)
    get_logger("unhandled").exception(
        "unhandled_exception",
        http_method=request.method.upper(),
        path=request.url.path,
        user_sub=getattr(user, "sub", None),
    )

    return problem_response(
        request=request,
        status_code=500,
        title="Internal Server Error",
        detail=str(exc) if exc else None,
    )
