"""FastAPI application for the Intermax access-control service.

Endpoints:
  POST   /api/auth/register               Create an account
  POST   /api/auth/login                  Email/password login, sets session cookie
  POST   /api/auth/logout                 Clear the session cookie
  GET    /api/auth/me                     Current session identity and permissions
  POST   /api/auth/refresh                Re-read role and re-issue the session token
  GET    /api/roles                       List roles (MANAGE_USERS)
  POST   /api/roles                       Create a custom role (MANAGE_USERS)
  GET    /api/roles/catalog               Known permission actions
  PATCH  /api/roles/{id}                  Update a role (MANAGE_USERS)
  DELETE /api/roles/{id}                  Delete a custom role (MANAGE_USERS)
  GET    /api/users                       List users with roles (MANAGE_USERS)
  GET    /api/users/list                  Member-picker directory
  PATCH  /api/users/{id}/role             Assign a role by id (MANAGE_USERS)
  PATCH  /api/admin/users/{id}/role       Assign a role by name (ADMIN)
  GET    /api/admin/audit                 Audit trail (MANAGE_USERS)
  GET    /api/projects                    Visible projects
  POST   /api/projects                    Create a project (CREATE_PROJECT)
  GET    /api/projects/{id}               Project details
  PATCH  /api/projects/{id}               Edit project budget
  POST   /api/projects/{id}/members       Add a project member (ASSIGN_TASKS)
  POST   /api/projects/{id}/tasks         Create a task
  GET    /api/tasks/{id}                  Task details
  GET    /api/budgets/workspaces          Visible budget workspaces
  POST   /api/budgets/workspaces          Create a budget workspace
  GET    /api/budgets/workspaces/{id}     Workspace details
  PATCH  /api/budgets/workspaces/{id}     Edit workspace budget
  GET    /health                          Health check
  GET    /metrics                         Prometheus metrics
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

import intermax
from intermax.api.rate_limit import limiter
from intermax.api.routes import audit, auth, budgets, projects, roles, users
from intermax.config import settings
from intermax.exceptions import IntermaxError
from intermax.logging_config import log_startup_info, setup_logging
from intermax.storage.database import Database
from intermax.storage.seed import seed_defaults

logger = logging.getLogger("intermax")
_audit_logger = logging.getLogger("intermax.audit")

_STARTUP_TIME: float = 0.0

# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------

_db = Database(settings.db_path)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _STARTUP_TIME
    _STARTUP_TIME = time.monotonic()
    setup_logging()
    await _db.connect()
    if settings.seed_defaults:
        await seed_defaults(_db, settings)
    log_startup_info(str(_db.db_path), settings.session_refresh_seconds, settings.uses_dev_secret)
    yield
    logger.info("Closing database connection")
    await _db.close()
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# OpenAPI tags
# ---------------------------------------------------------------------------
_OPENAPI_TAGS = [
    {"name": "Health", "description": "Health checks and version info"},
    {"name": "Auth", "description": "Accounts and sessions"},
    {"name": "Roles", "description": "Roles and their permission sets"},
    {"name": "Users", "description": "User directory and role assignment"},
    {"name": "Projects", "description": "Projects, members and tasks"},
    {"name": "Budgets", "description": "Budget workspaces"},
    {"name": "Admin", "description": "Administrative operations and audit trail"},
    {"name": "Metrics", "description": "Prometheus metrics endpoint"},
]

app = FastAPI(
    title="Intermax Access Control",
    description="Role-based and resource-scoped authorization for Intermax projects.",
    version=intermax.__version__,
    lifespan=lifespan,
    openapi_tags=_OPENAPI_TAGS,
)

app.state.db = _db
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
@app.exception_handler(IntermaxError)
async def intermax_error_handler(request: Request, exc: IntermaxError) -> JSONResponse:
    """Centralized handler for custom Intermax exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_type,
            "message": exc.message,
            "request_id": request_id,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request payloads are reported as 400 with the offending fields."""
    request_id = getattr(request.state, "request_id", "unknown")
    issues = [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "message": "Invalid payload",
            "issues": issues,
            "request_id": request_id,
        },
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After header on rate limit."""
    request_id = getattr(request.state, "request_id", "unknown")
    _audit_logger.warning(
        "Rate limit exceeded: %s %s from %s",
        request.method,
        request.url.path,
        get_remote_address(request),
        extra={"action": "rate_limit_exceeded", "path": request.url.path},
    )
    response = JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": str(exc.detail),
            "request_id": request_id,
        },
    )
    response.headers["Retry-After"] = "60"
    return response


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
        extra={"request_id": request_id, "path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An internal error occurred",
            "request_id": request_id,
        },
    )


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip compression for responses > 500 bytes
app.add_middleware(GZipMiddleware, minimum_size=500)


# ---------------------------------------------------------------------------
# Security headers middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def security_headers_middleware(request: Request, call_next) -> Response:
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
    response.headers["Cache-Control"] = "no-store"
    response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    return response


# ---------------------------------------------------------------------------
# Request logging middleware (also sets request_id on state for error handler)
# ---------------------------------------------------------------------------
@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    request_id = str(uuid4())[:8]
    request.state.request_id = request_id
    start = time.monotonic()
    response: Response = await call_next(request)
    elapsed_ms = round((time.monotonic() - start) * 1000, 1)
    session = getattr(request.state, "session", None)
    logger.info(
        "%s %s %s %.1fms [%s]",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request_id,
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "duration_ms": elapsed_ms,
            "user_id": session.user_id if session else None,
        },
    )
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------
_instrumentator = Instrumentator(
    excluded_handlers=["/metrics"],
    should_respect_env_var=False,
)
_instrumentator.instrument(app).expose(app, endpoint="/metrics", tags=["Metrics"])


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth.router)
app.include_router(roles.router)
app.include_router(users.router)
app.include_router(users.admin_router)
app.include_router(audit.router)
app.include_router(projects.router)
app.include_router(budgets.router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"], summary="Health check")
async def health():
    uptime_s = time.monotonic() - _STARTUP_TIME if _STARTUP_TIME > 0 else 0
    roles_count = len(await _db.list_roles())
    return {
        "status": "ok",
        "version": intermax.__version__,
        "uptime_seconds": round(uptime_s, 1),
        "role_count": roles_count,
    }
