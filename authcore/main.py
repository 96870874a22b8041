"""
Main application entry point - FastAPI app instance and configuration.

Run with: uvicorn authcore.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authcore.core.config import settings
from authcore.core.errors import AuthCoreError, TransientAuthError, Unauthenticated
from authcore.core.logging_config import configure_logging
from authcore.routers import admin, auth, calendar, calendar_auth, users

configure_logging()

logger = logging.getLogger("authcore.main")

# ---------------------------------------------------------------------------
# CREATE FASTAPI APPLICATION
# ---------------------------------------------------------------------------
app = FastAPI(
    title=settings.APP_NAME,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ---------------------------------------------------------------------------
# CORS MIDDLEWARE
# ---------------------------------------------------------------------------
# allow_credentials: the browser frontend authenticates with the session cookie,
# so origins must be listed explicitly (never "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# ERROR MAPPING
# ---------------------------------------------------------------------------
@app.exception_handler(AuthCoreError)
async def auth_core_error_handler(request: Request, exc: AuthCoreError) -> JSONResponse:
    """
    Map the auth core taxonomy to HTTP.

    Body is {"detail": <public message>, "code": <machine code>}; provider
    text never reaches the client.
    """
    headers = {}
    if isinstance(exc, Unauthenticated):
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, TransientAuthError):
        headers["Retry-After"] = str(exc.retry_after_seconds)

    if exc.status_code >= 500 and not isinstance(exc, TransientAuthError):
        logger.error(f"{exc.code} on {request.method} {request.url.path}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


# ---------------------------------------------------------------------------
# REGISTER ROUTERS
# ---------------------------------------------------------------------------
# auth.router:          /auth/register, /auth/login, /auth/logout
# users.router:         /users/me
# admin.router:         /admin/users (admin role only)
# calendar_auth.router: /auth/calendar/* OAuth connect flow
# calendar.router:      /calendar/events, /calendar/calendars
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(calendar_auth.router)
app.include_router(calendar.router)


# ---------------------------------------------------------------------------
# HEALTH CHECK ENDPOINT
# ---------------------------------------------------------------------------
@app.get("/health", tags=["health"])
def health_check():
    """Liveness only; does not touch the database."""
    return {"status": "ok"}
