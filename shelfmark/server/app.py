import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.routing import APIRouter
from fastapi.staticfiles import StaticFiles
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.routing import Match

from shelfmark.server.db.engine import create_engine, create_session_factory
from shelfmark.server.errors import ReorderConflictError, StorageError
from shelfmark.server.log import REQUEST_ID_HEADER, request_context, setup_logging
from shelfmark.server.preview import PreviewFetcher
from shelfmark.server.settings import get_settings

SPA_ROUTE_NAME = "spa"


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, echo_sql=settings.db_echo)
    logger.info(
        "Shelfmark starting (host={}, port={}, environment={})", settings.host, settings.port, settings.environment
    )

    _app.state.db_engine = None
    _app.state.db_session_factory = None

    # -- Database --------------------------------------------------------------
    if settings.database_url:
        engine = create_engine(settings.database_url)
        _app.state.db_engine = engine
        _app.state.db_session_factory = create_session_factory(engine)
        logger.info("Database: {} engine ready", engine.dialect.name)
    else:
        logger.warning("SHELFMARK_DATABASE_URL not set -- database features disabled")

    # -- Link previews ---------------------------------------------------------
    # The fetcher enforces its own overall bound; the client timeout covers
    # individual connect/read phases.
    http_client = httpx.AsyncClient(timeout=settings.preview_timeout, follow_redirects=True)
    _app.state.preview_fetcher = PreviewFetcher(
        http_client,
        timeout=settings.preview_timeout,
        favicon_service=settings.favicon_service,
        user_agent=settings.preview_user_agent,
    )

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Shelfmark shutting down")
    await http_client.aclose()

    if _app.state.db_engine is not None:
        await _app.state.db_engine.dispose()
        logger.info("Database: disposed")


app = FastAPI(title="Shelfmark", lifespan=lifespan)

_settings = get_settings()
if _settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Log one line per API request with status and latency, tagged with its request id.

    An inbound ``X-Request-ID`` is reused (truncated to 64 chars); otherwise a
    new id is generated.  Either way it is echoed on the response.
    """
    if not request.url.path.startswith("/api"):
        return await call_next(request)
    inbound = request.headers.get(REQUEST_ID_HEADER, "").strip()[:64]
    with request_context(inbound or None) as request_id:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("{} {} {} in {:.1f}ms", request.method, request.url.path, response.status_code, elapsed_ms)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# ---------------------------------------------------------------------------
# Error rendering -- every error body is {"message": ...}
# ---------------------------------------------------------------------------


def _allowed_methods(request: Request) -> list[str]:
    """Every method registered for the request path, across all routes."""
    methods: set[str] = set()
    for route in request.app.routes:
        if getattr(route, "name", None) == SPA_ROUTE_NAME:
            continue
        match, _ = route.matches(request.scope)
        if match != Match.NONE:
            methods.update(getattr(route, "methods", None) or ())
    return sorted(methods)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    headers = dict(exc.headers or {})
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        headers["Allow"] = ", ".join(_allowed_methods(request))
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("{} {} -> {}: {}", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=headers or None)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("{} {} rejected: {} validation errors", request.method, request.url.path, len(exc.errors()))
    return JSONResponse(
        {"message": "Invalid data", "errors": jsonable_encoder(exc.errors())},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    # Already logged with the driver error where it was raised.
    code = status.HTTP_409_CONFLICT if isinstance(exc, ReorderConflictError) else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse({"message": str(exc)}, status_code=code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")

from shelfmark.server.routers.bookmarks import router as bookmarks_router  # noqa: E402
from shelfmark.server.routers.collections import router as collections_router  # noqa: E402
from shelfmark.server.routers.health import router as health_router  # noqa: E402
from shelfmark.server.routers.preview import router as preview_router  # noqa: E402
from shelfmark.server.routers.shares import router as shares_router  # noqa: E402
from shelfmark.server.routers.spaces import router as spaces_router  # noqa: E402
from shelfmark.server.routers.transfer import router as transfer_router  # noqa: E402
from shelfmark.server.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(health_router)
api.include_router(workspaces_router)
api.include_router(spaces_router)
api.include_router(collections_router)
api.include_router(bookmarks_router)
api.include_router(preview_router)
api.include_router(shares_router)
api.include_router(transfer_router)

app.include_router(api)

# ---------------------------------------------------------------------------
# Static UI serving
# Resolved relative to CWD; override with SHELFMARK_UI_DIR.
# ---------------------------------------------------------------------------
_UI_DIR = Path(_settings.ui_dir)

if _UI_DIR.is_dir():
    if (_UI_DIR / "assets").is_dir():
        app.mount("/assets", StaticFiles(directory=_UI_DIR / "assets"), name="ui-assets")

    @app.get("/{full_path:path}", name=SPA_ROUTE_NAME, include_in_schema=False)
    async def serve_spa(full_path: str) -> FileResponse:
        """Serve the SPA index.html for all unmatched routes (client-side routing)."""
        if full_path == "api" or full_path.startswith("api/"):
            raise StarletteHTTPException(status.HTTP_404_NOT_FOUND, detail="Not Found")
        file_path = (_UI_DIR / full_path).resolve()
        if file_path.is_file() and file_path.is_relative_to(_UI_DIR.resolve()):
            return FileResponse(file_path)
        return FileResponse(_UI_DIR / "index.html")
