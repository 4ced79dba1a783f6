"""
api/main.py -- FastAPI application entry point for Gatekeeper.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Lifespan builds the store and the service once at startup and closes the
store on shutdown. Route handlers reach the service via app.state.

Exception handlers map the service's ErrorKind to HTTP statuses. All of
them return the same ErrorResponse envelope, and none of them put raw
backend detail in the body -- that goes to the log only.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, ErrorKind
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gatekeeper.api")

# ErrorKind -> (status, code, client message). INTERNAL never carries detail.
_ERROR_STATUS = {
    ErrorKind.ALREADY_EXISTS: (409, "conflict", "Resource already exists."),
    ErrorKind.NOT_FOUND: (404, "not_found", "Resource not found."),
    ErrorKind.INVALID_CREDENTIALS: (400, "invalid_credentials", "Invalid email or password."),
    ErrorKind.INVALID_TOKEN: (400, "invalid_token", "Invalid token."),
    ErrorKind.INTERNAL: (500, "internal_error", "An unexpected error occurred."),
}


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_service(store: UserStore) -> AuthService:
    """Wire the service against a store. The store satisfies all three ports."""
    settings = get_settings()
    return AuthService(
        user_saver=store,
        user_provider=store,
        app_provider=store,
        token_ttl=settings.token_ttl,
        bcrypt_rounds=settings.bcrypt_rounds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the store and service on startup; dispose the store on shutdown."""
    logger.info("Gatekeeper API starting up")
    app.state.user_store = UserStore()
    app.state.auth_service = build_service(app.state.user_store)
    logger.info("Auth initialized (token_ttl=%ss)", get_settings().token_ttl_seconds)

    yield

    app.state.user_store.close()
    logger.info("Gatekeeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Gatekeeper",
    description="Multi-tenant credential authority: users, passwords, per-app session tokens.",
    version=_VERSION,
    lifespan=lifespan,
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


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map a classified service failure to its status.

    The service has already reported the failure through its observer; only
    INTERNAL is logged again here, with the chained cause, because that is the
    one a caller will report as "it broke".
    """
    status, code, message = _ERROR_STATUS[exc.kind]
    if exc.kind is ErrorKind.INTERNAL:
        logger.error(
            "Internal failure on %s %s: %r",
            request.method,
            request.url.path,
            exc.__cause__,
        )
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )


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

    Route handlers raise HTTPException with a dict detail; when it is already
    structured, use it directly as the error field.
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
    """Catch-all handler for unexpected server errors.

    The raw exception is logged, never sent. The client receives only a
    generic message.
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


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, version, and whether the database answers."""
    try:
        request.app.state.user_store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database ping failed")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=_VERSION,
        components={"app": "ok", "database": database},
    )
