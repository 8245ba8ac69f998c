"""
api/main.py -- FastAPI application entry point for Stockroom.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. log_requests          -- method, path, status, latency per request
  2. session_middleware    -- loads request.state.session, commits it after
  3. SlowAPIMiddleware     -- enforces per-route rate limits from core.limiter
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan builds every store and service once and hangs them on app.state;
route handlers and guards read them from there. Shutdown releases them in
reverse order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.items import router as items_router
from auth.authenticators import SessionAuthenticator, TokenAuthenticator
from auth.dependencies import LoginRequired
from auth.errors import AuthError
from auth.passwords import PasswordHasher
from auth.session import MemorySessionBackend, SessionBackend, SessionService, SQLSessionBackend
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from core.limiter import limiter
from inventory.store import ItemStore
from inventory.uploads import find_upload

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("stockroom.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# App state wiring
# ---------------------------------------------------------------------------


def init_app_state(
    app: FastAPI,
    settings: Settings,
    database_url: str | None = None,
    upload_dir: str | None = None,
    session_backend: SessionBackend | None = None,
) -> None:
    """Create stores and services and attach them to app.state.

    The keyword overrides let tests point everything at an isolated database,
    a temporary upload directory, or a specific session backend.
    """
    db_url = database_url or settings.database_url
    app.state.user_store = UserStore(db_url)
    app.state.item_store = ItemStore(db_url)
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(settings.secret_key, expire_seconds=settings.token_expire_seconds)

    if session_backend is None:
        session_backend = SQLSessionBackend(db_url) if settings.session_backend == "sql" else MemorySessionBackend()
    app.state.sessions = SessionService(
        session_backend,
        secret=settings.session_secret,
        cookie_name=settings.session_cookie_name,
        max_age=settings.session_max_age,
        secure=settings.secure_cookies,
    )
    app.state.authenticators = {
        "session": SessionAuthenticator(),
        "token": TokenAuthenticator(app.state.tokens),
    }
    app.state.upload_dir = upload_dir or settings.upload_dir
    Path(app.state.upload_dir).mkdir(parents=True, exist_ok=True)


def close_app_state(app: FastAPI) -> None:
    app.state.sessions.backend.close()
    app.state.item_store.close()
    app.state.user_store.close()


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Drop expired sessions every hour.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(60 * 60)
        removed = await run_in_threadpool(app.state.sessions.backend.purge_expired)
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build app.state on startup; release it on shutdown."""
    logger.info("Stockroom starting up")
    init_app_state(app, _settings)
    logger.info(
        "Stores initialized (session_backend=%s, upload_dir=%s)",
        _settings.session_backend,
        app.state.upload_dir,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    close_app_state(app)
    logger.info("Stockroom shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Stockroom",
    description="Inventory management with session and token authentication.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() and @app.middleware both wrap the current stack, so the
# last registration is the outermost layer.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:4000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def session_middleware(request: Request, call_next):
    """Attach the caller's server-side session and persist it afterwards.

    The flash message left by the previous request is popped here, before the
    route runs, so it is shown exactly once.
    """
    sessions: SessionService = request.app.state.sessions
    session = await run_in_threadpool(sessions.load, request.cookies.get(sessions.cookie_name))
    request.state.session = session
    request.state.flash = session.pop_flash()
    response = await call_next(request)
    await run_in_threadpool(sessions.commit, session, response)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(items_router, tags=["Items"])
# Web UI router is mounted by asgi.py, not here.
# api/ and web/ are independent layers -- only the top-level asgi.py imports both.


# ---------------------------------------------------------------------------
# Exception handlers
#
# JSON errors share one envelope: {"message": ..., "code"?: ..., "detail"?: ...}.
# ---------------------------------------------------------------------------


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
    """Page guard failure: send the browser to the login form."""
    return RedirectResponse("/login", status_code=302)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message, code=exc.code).model_dump(exclude_none=True),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(message="Too many requests.", code="rate_limited", detail=str(exc)).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a client error (400), reported before any store access."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            message="Request validation failed.",
            code="validation_error",
            detail=str(exc.errors()),
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Route handlers raise HTTPException with detail={"message": ...}; pass
    that dict through as the body. Plain string details are wrapped."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail), code=f"http_{exc.status_code}").model_dump(exclude_none=True),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception is logged, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(message="An unexpected error occurred.", code="internal_error").model_dump(
            exclude_none=True
        ),
    )


# ---------------------------------------------------------------------------
# Uploaded images -- read from app.state.upload_dir on every request.
# ---------------------------------------------------------------------------


@app.get("/uploads/{filename}", tags=["Uploads"])
def serve_upload(request: Request, filename: str) -> FileResponse:
    """Serve a stored item image."""
    path = find_upload(filename, request.app.state.upload_dir)
    if path is None:
        raise HTTPException(status_code=404, detail={"message": "File not found"})
    return FileResponse(path)


# ---------------------------------------------------------------------------
# Health endpoint -- no auth, no rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database reachability."""
    database = "ok"
    try:
        request.app.state.user_store.has_users()
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(version=VERSION, database=database)
