"""Middleware configuration for FastAPI application"""
import logging
import secrets

from fastapi import Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import WordleError
from app.core.security import (
    check_rate_limit, cookie_domain_for, get_client_identifier,
    log_api_access, validate_origin_referer
)
from app.db.redis import get_csrf_token, set_csrf_token

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")

CALLBACK_PATHS = ("/api/auth/discord/callback",)

PUBLIC_PATHS = {
    "/api/auth/discord/login",
    "/api/auth/me",
    "/api/auth/logout",
    "/api/wordle/daily-word",
    "/api/wordle/leaderboard",
    "/metrics",
    "/health",
}

# Called by the Discord bot with a bearer token, never from a browser
BOT_PREFIXES = ("/api/discord/",)


def get_allowed_origins():
    """Get list of allowed CORS origins"""
    allowed_origins = [settings.FRONTEND_URL]
    if settings.ENVIRONMENT == "development":
        allowed_origins.extend([
            "http://localhost:3000",
            "http://localhost:3001",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000"
        ])
    return allowed_origins


def setup_cors_middleware(app):
    """Setup CORS middleware for FastAPI app"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _reject(request: Request, status_code: int, message: str, allowed_origins: list) -> Response:
    response = JSONResponse(status_code=status_code, content={"error": message})
    origin = request.headers.get("Origin")
    if origin and origin in allowed_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


async def security_middleware(request: Request, call_next):
    """Middleware for rate limiting, origin checks, CSRF cookie issue and access logging"""
    allowed_origins = get_allowed_origins()
    session_id = request.cookies.get("session_id")
    status_code = 500
    error = None

    try:
        path = request.url.path
        is_callback = path in CALLBACK_PATHS
        is_public = path in PUBLIC_PATHS
        is_bot = path.startswith(BOT_PREFIXES)

        if not is_callback:
            identifier = get_client_identifier(request, session_id)
            is_state_changing = request.method in ["POST", "PATCH", "DELETE", "PUT"]
            if not check_rate_limit(identifier, strict=is_state_changing):
                error = "Rate limit exceeded"
                status_code = 429
                security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {path}")
                return _reject(request, 429, "Rate limit exceeded. Please try again later.", allowed_origins)

            needs_origin_check = (
                not is_public and not is_bot and request.method != "OPTIONS"
                and (request.method != "GET" or settings.ENVIRONMENT == "production")
            )
            if needs_origin_check and not validate_origin_referer(request, allowed_origins):
                error = "Invalid origin or referer"
                status_code = 403
                security_logger.warning(f"Origin/Referer validation failed - Path: {path}")
                return _reject(request, 403, "Invalid origin or referer", allowed_origins)

        response = await call_next(request)
        status_code = response.status_code

        # Hand the browser a readable CSRF token alongside its session
        if session_id and not is_callback and not is_bot and status_code < 400:
            csrf_token = get_csrf_token(session_id)
            if not csrf_token:
                csrf_token = secrets.token_urlsafe(32)
                set_csrf_token(session_id, csrf_token)

            response.headers["X-CSRF-Token"] = csrf_token
            response.set_cookie(
                key="csrf_token_client",
                value=csrf_token,
                domain=cookie_domain_for(request),
                httponly=False,
                secure=settings.ENVIRONMENT == "production",
                samesite="lax",
                path="/"
            )

        return response

    except Exception as e:
        error = str(e)
        security_logger.error(f"Security middleware error: {error}", exc_info=True)
        raise
    finally:
        log_api_access(request, session_id, status_code, error)


async def wordle_exception_handler(request: Request, exc: WordleError):
    """Map core error kinds to their HTTP status"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message}
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )
