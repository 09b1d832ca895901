"""
discord_stamp API — HTTP surface for the credential check.

Endpoints:
  GET  /auth/discord        — Redirect to Discord's authorization page
  GET  /auth/callback       — Exchange ?code= and redirect back with the token
  POST /check-credentials   — Run the four-criterion check for {"accessToken": ...}
  GET  /health              — Health check
"""

import time
import uuid
from typing import Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from . import __version__
from .config import Settings
from .errors import ConfigurationError, InvalidTokenInput, StampError
from .log import request_id_var, setup_structured_logging
from .oauth import authorize_url, exchange_code
from .pipeline import check_credentials

logger = setup_structured_logging()


# ─── Request models ───────────────────────────────────────────────

class CheckRequest(BaseModel):
    accessToken: Optional[str] = Field(None, max_length=512)


# ─── Middleware & handlers ────────────────────────────────────────

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Inject request ID and log each request. Query strings are not logged."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request_id_var.set(rid)

        t0 = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error", extra={"path": request.url.path})
            raise

        logger.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.time() - t0) * 1000, 1),
            },
        )
        response.headers["X-Request-ID"] = rid
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


async def stamp_error_handler(request: Request, exc: StampError):
    logger.warning(
        "%s on %s: %s", type(exc).__name__, request.url.path, exc,
        extra={"upstream_status": exc.upstream_status},
    )
    return _error(exc.status_code, exc.public_message)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(400, InvalidTokenInput.public_message)


async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, type(exc).__name__)
    return _error(500, "Failed to check credentials")


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return _error(429, "Rate limit exceeded. Try again later.")


# ─── App factory ──────────────────────────────────────────────────

def _app_redirect(settings: Settings, **params) -> RedirectResponse:
    base = settings.app_url.rstrip("/") + "/"
    return RedirectResponse(f"{base}?{urlencode(params)}" if params else base)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_structured_logging(settings.log_level)
    limiter = Limiter(key_func=get_remote_address)
    limiter.enabled = settings.rate_limit_enabled

    app = FastAPI(title="discord-stamp", version=__version__)
    app.state.settings = settings
    app.state.limiter = limiter
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(StampError, stamp_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "oauth_configured": settings.oauth_configured,
        }

    @app.get("/auth/discord")
    async def auth_discord():
        return RedirectResponse(authorize_url(settings))

    @app.get("/auth/callback")
    async def auth_callback(code: Optional[str] = None):
        if not code:
            return _app_redirect(settings, error="no_code")
        try:
            token = await exchange_code(code, settings)
        except ConfigurationError:
            logger.error("Callback hit without OAuth configuration")
            return _app_redirect(settings, error="config_error")
        except StampError as e:
            logger.warning("Code exchange failed: %s", e)
            return _app_redirect(settings, error="auth_failed")
        return _app_redirect(settings, token=token)

    @app.post("/check-credentials")
    @limiter.limit(settings.check_rate_limit)
    async def check(request: Request, body: CheckRequest):
        if not body.accessToken:
            raise InvalidTokenInput("missing accessToken")
        report = await check_credentials(body.accessToken, settings)
        return report.to_dict()

    return app
