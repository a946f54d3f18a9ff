"""
api/main.py -- FastAPI application entry point for Conduit.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan builds every process-wide collaborator once (stores, token service,
favorites engine) and hangs it on app.state. Nothing below reads the
environment directly; configuration comes from core.config.get_settings().

Error mapping (the only place typed errors become HTTP):
  InvalidCredentials, UniqueConstraintViolation, SlugTaken -> 422 field-scoped
  Token*/Unauthorized -> 401, Forbidden -> 403, NotFound -> 404
  RequestValidationError -> 422 field-scoped
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, FieldErrorResponse, HealthResponse
from api.routes.articles import router as articles_router
from api.routes.profiles import router as profiles_router
from api.routes.users import router as users_router
from auth.store import UserStore
from auth.tokens import TokenService
from content.favorites import FavoritesEngine
from content.store import ArticleStore
from core.config import get_settings
from core.errors import ConduitError

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("conduit.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters: the favorites engine wraps both stores, so the
    stores come first. The token service is built from the settings snapshot
    and never changes afterwards.
    """
    logger.info("Conduit API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.article_store = ArticleStore(_settings.database_url)
    app.state.favorites = FavoritesEngine(app.state.user_store, app.state.article_store)
    app.state.token_service = TokenService.from_settings(_settings)
    logger.info("Stores initialized; tokens expire after %d days", _settings.token_expire_days)

    yield

    app.state.article_store.close()
    app.state.user_store.close()
    logger.info("Conduit API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Conduit API",
    description="Users, articles and favorites with token authentication.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


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

app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(profiles_router, prefix="/api", tags=["Profiles"])
app.include_router(articles_router, prefix="/api", tags=["Articles"])


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

# pydantic error type -> message the existing frontend renders next to a field
_VALIDATION_MESSAGES = {
    "missing": "can't be blank",
    "string_too_short": "can't be blank",
    "string_pattern_mismatch": "is invalid",
    "string_type": "must be a string",
    "string_too_long": "is too long",
}


def _field_name(loc: tuple) -> str:
    """Last string element of a pydantic error location: ("body", "user", "email") -> "email"."""
    names = [part for part in loc if isinstance(part, str) and part not in ("body", "query", "path")]
    return names[-1] if names else "body"


@app.exception_handler(ConduitError)
async def conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    """Map typed domain errors to their HTTP status and wire shape."""
    field_errors = exc.field_errors()
    if field_errors is not None:
        return JSONResponse(
            status_code=exc.status_code,
            content=FieldErrorResponse(errors=field_errors).model_dump(),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with field-scoped messages, e.g. {"errors": {"password": ["can't be blank"]}}."""
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        message = _VALIDATION_MESSAGES.get(err.get("type", ""), err.get("msg", "is invalid"))
        field = _field_name(tuple(err.get("loc", ())))
        if message not in errors.setdefault(field, []):
            errors[field].append(message)
    return JSONResponse(status_code=422, content=FieldErrorResponse(errors=errors).model_dump())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
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
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
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
# ---------------------------------------------------------------------------


@app.get("/api/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
