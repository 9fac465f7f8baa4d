"""Redis client for sessions, OAuth state, rate limiting and delivery guards"""
import json
import logging
from typing import Dict, Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


# Session TTL (30 days)
SESSION_TTL = 30 * 24 * 60 * 60

# OAuth state TTL (5 minutes)
OAUTH_STATE_TTL = 5 * 60

# Guild sync throttle marker, refreshed whenever a sync is scheduled
GUILD_SYNC_TTL = settings.GUILD_SYNC_INTERVAL_HOURS * 60 * 60


def _env_key(key: str) -> str:
    """Namespace keys shared between environments on one Redis"""
    return f"{settings.ENVIRONMENT}:{key}"


def set_session(session_id: str, user_id: int) -> None:
    """Store session in Redis"""
    get_redis_client().setex(f"session:{session_id}", SESSION_TTL, user_id)


def get_session(session_id: str) -> Optional[int]:
    """Get user_id from session"""
    user_id = get_redis_client().get(f"session:{session_id}")
    return int(user_id) if user_id else None


def delete_session(session_id: str) -> None:
    """Delete session and its CSRF token"""
    client = get_redis_client()
    client.delete(f"session:{session_id}")
    client.delete(f"csrf:{session_id}")


def set_csrf_token(session_id: str, token: str) -> None:
    get_redis_client().setex(f"csrf:{session_id}", SESSION_TTL, token)


def get_csrf_token(session_id: str) -> Optional[str]:
    return get_redis_client().get(f"csrf:{session_id}")


def set_oauth_state(state: str, data: Dict) -> None:
    """Remember an OAuth state value until the callback comes back"""
    get_redis_client().setex(f"oauth_state:{state}", OAUTH_STATE_TTL, json.dumps(data))


def pop_oauth_state(state: str) -> Optional[Dict]:
    """Consume an OAuth state value; None when unknown or expired"""
    key = f"oauth_state:{state}"
    client = get_redis_client()
    raw = client.get(key)
    if raw is None:
        return None
    client.delete(key)
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def increment_rate_limit(identifier: str, window: int) -> int:
    """Increment rate limit counter and return current count.
    Uses Lua script to atomically increment and set TTL only for new keys (fixed window rate limiting)."""
    key = f"ratelimit:{identifier}"

    lua_script = """
    local count = redis.call('INCR', KEYS[1])
    if count == 1 then
        redis.call('EXPIRE', KEYS[1], ARGV[1])
    end
    return count
    """

    count = get_redis_client().eval(lua_script, 1, key, window)
    return int(count)


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit using Redis. Returns True if allowed, False if rate limited."""
    window = settings.RATE_LIMIT_STRICT_WINDOW if strict else settings.RATE_LIMIT_WINDOW
    max_requests = settings.RATE_LIMIT_STRICT_REQUESTS if strict else settings.RATE_LIMIT_REQUESTS
    return increment_rate_limit(identifier, window) <= max_requests


def acquire_lock(lock_key: str, timeout: int = 30) -> bool:
    """Acquire a distributed lock using Redis SET with NX and EX.

    Returns:
        True if lock was acquired, False if lock already exists
    """
    result = get_redis_client().set(lock_key, "1", nx=True, ex=timeout)
    return result is True


def acquire_destination_guard(server_id: str) -> bool:
    """Claim a destination for one delivery window.

    Only one poll per window may hand out payloads for a given server.
    Fails open: if Redis is unreachable the destination is served anyway.
    """
    key = _env_key(f"notify_guard:{server_id}")
    try:
        return acquire_lock(key, timeout=settings.DESTINATION_GUARD_SECONDS)
    except redis.RedisError as e:
        logger.warning(f"Destination guard unavailable for server {server_id}, serving anyway: {e}")
        return True


def mark_guild_sync(user_id: int) -> bool:
    """Return True if a guild sync should run now for this user.

    Sets a throttle marker so concurrent requests schedule at most one sync.
    """
    try:
        return acquire_lock(f"guild_sync:{user_id}", timeout=GUILD_SYNC_TTL)
    except redis.RedisError as e:
        logger.warning(f"Guild sync throttle unavailable for user {user_id}: {e}")
        return False
