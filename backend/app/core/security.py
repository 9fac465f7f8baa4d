"""Security dependencies, rate limiting and access logging"""
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.redis import check_rate_limit as redis_check_rate_limit
from app.db.redis import get_csrf_token, get_session, mark_guild_sync
from app.db.session import get_db
from app.models.user import User

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")

bot_bearer = HTTPBearer(auto_error=False)


def require_auth(request: Request) -> int:
    """Dependency: Require authentication, return user_id"""
    session_id = request.cookies.get("session_id")

    if not session_id:
        raise HTTPException(401, "Not authenticated. Please log in.")

    user_id = get_session(session_id)
    if not user_id:
        raise HTTPException(401, "Session expired. Please log in again.")

    return user_id


def require_csrf(
    request: Request,
    user_id: int = Depends(require_auth),
    x_csrf_token: Optional[str] = Header(None, alias="X-CSRF-Token")
) -> int:
    """Dependency: Require auth + valid CSRF token, return user_id"""
    session_id = request.cookies.get("session_id")
    expected_csrf = get_csrf_token(session_id)
    if not expected_csrf or not x_csrf_token or not secrets.compare_digest(x_csrf_token, expected_csrf):
        security_logger.warning(
            f"CSRF validation failed - User: {user_id}, "
            f"IP: {request.client.host if request.client else 'unknown'}, "
            f"Path: {request.url.path}"
        )
        raise HTTPException(403, "Invalid or missing CSRF token")

    return user_id


def require_bot_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bot_bearer)) -> None:
    """Dependency: the Discord bot authenticates with a shared bearer token"""
    expected = settings.DISCORD_BOT_API_TOKEN
    if not expected:
        security_logger.error("DISCORD_BOT_API_TOKEN is not configured; rejecting bot request")
        raise HTTPException(503, "Bot API is not configured")

    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        security_logger.warning("Bot API request with missing or invalid bearer token")
        raise HTTPException(401, "Invalid bot token", headers={"WWW-Authenticate": "Bearer"})


def _client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def get_client_identifier(request: Request, session_id: Optional[str] = None) -> str:
    """Get a unique identifier for rate limiting"""
    if session_id:
        return f"session:{session_id}"
    return f"ip:{_client_ip(request)}"


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit

    Args:
        identifier: Client identifier (session ID or IP)
        strict: If True, use stricter rate limits for state-changing operations
    """
    return redis_check_rate_limit(identifier, strict=strict)


def validate_origin_referer(request: Request, allowed_origins: list) -> bool:
    """Validate Origin and Referer headers against the allowed origins"""
    origin = request.headers.get("Origin")
    referer = request.headers.get("Referer")
    allowed = {o.rstrip("/") for o in allowed_origins if o}

    if settings.ENVIRONMENT == "development" and not origin and not referer:
        return True

    if origin and origin.rstrip("/") in allowed:
        return True

    if referer:
        parsed = urlparse(referer)
        if f"{parsed.scheme}://{parsed.netloc}" in allowed:
            return True

    return False


def log_api_access(
    request: Request,
    session_id: Optional[str] = None,
    status_code: int = 200,
    error: Optional[str] = None
):
    """Log one JSON line per request"""
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "query": str(request.url.query) if request.url.query else None,
        "session_id": session_id[:16] + "..." if session_id else None,
        "client_ip": _client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "origin": request.headers.get("Origin", "none"),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")


def cookie_domain_for(request: Request) -> Optional[str]:
    """Parent domain for cross-subdomain cookies, None for localhost"""
    host = request.headers.get("host", settings.DOMAIN).split(":")[0]
    domain_parts = host.split(".")
    if len(domain_parts) >= 2:
        return "." + ".".join(domain_parts[-2:])
    return None


def set_auth_cookie(response: Response, session_id: str, request: Request) -> None:
    """Set session cookie shared across subdomains"""
    response.set_cookie(
        key="session_id",
        value=session_id,
        domain=cookie_domain_for(request),
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=60 * 60 * 24 * 7  # 7 days
    )


def clear_auth_cookie(response: Response, request: Request) -> None:
    response.delete_cookie("session_id", domain=cookie_domain_for(request))
    response.delete_cookie("csrf_token_client", domain=cookie_domain_for(request))


def get_current_player(
    background_tasks: BackgroundTasks,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Dependency: identity the game core works with

    Schedules a guild refresh in the background when the stored list is stale.
    """
    from app.services.discord_service import needs_guild_sync, sync_user_guilds

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(401, "Session expired. Please log in again.")

    if needs_guild_sync(user) and mark_guild_sync(user.id):
        background_tasks.add_task(sync_user_guilds, user.id)

    return {
        "user_id": user.id,
        "player_id": user.discord_id,
        "display_name": user.display_name,
        "group_ids": set(user.guilds or []),
    }
