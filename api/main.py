"""
api/main.py -- FastAPI application entry point for Shopfront.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- lets the storefront (FRONTEND_URL) send the session cookie
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds every long-lived collaborator once: settings, the session
token issuer (which captures APP_SECRET for the life of the process), the
stores, the mail sender, and the services. Nothing is rebuilt per request.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.items import router as items_router
from auth.errors import AuthError
from auth.mail import MailSender
from auth.reset import ResetTokenManager
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import SessionTokenIssuer
from core.config import get_settings
from items.service import ItemService
from items.store import ItemStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("shopfront.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-level collaborators on startup; dispose of them on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown, even if a request handler raised.
    """
    logger.info("Shopfront API starting up")
    settings = get_settings()
    app.state.settings = settings
    app.state.session_issuer = SessionTokenIssuer(settings.app_secret)
    app.state.user_store = UserStore(settings.database_url)
    app.state.item_store = ItemStore(settings.items_database_url)
    mailer = MailSender(settings)
    logger.info("Mail delivery mode: %s", mailer.mode)
    resets = ResetTokenManager(
        store=app.state.user_store,
        issuer=app.state.session_issuer,
        mailer=mailer,
        frontend_url=settings.frontend_url,
    )
    app.state.auth_service = AuthService(
        store=app.state.user_store,
        issuer=app.state.session_issuer,
        resets=resets,
    )
    app.state.item_service = ItemService(app.state.item_store)
    logger.info("Auth initialized (has_users=%s)", app.state.user_store.has_users())

    yield

    app.state.item_store.close()
    app.state.user_store.close()
    logger.info("Shopfront API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Shopfront API",
    description="Accounts, sessions, password reset and item passthrough for the Shopfront store.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() calls are applied outermost-first from the caller's
# perspective. Register in the order you want the request to encounter
# them: CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=[_settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(items_router, prefix="/api/v1", tags=["Items"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the auth failure taxonomy onto its HTTP status and error code."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc.code, request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors (store or mail outages included).

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit -- health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and whether the user database answers."""
    try:
        request.app.state.user_store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
