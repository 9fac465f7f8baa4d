"""Discord OAuth login and guild membership sync"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from app.core.config import (
    DISCORD_AUTHORIZE_URL, DISCORD_SCOPES, DISCORD_TOKEN_URL,
    DISCORD_USER_GUILDS_URL, DISCORD_USER_URL, settings
)
from app.core.exceptions import CollaboratorUnavailableError, ValidationError
from app.core.metrics import login_attempts_counter
from app.db.helpers import get_discord_access_token, get_user_by_discord_id, save_discord_tokens, update_user_guilds
from app.db.redis import pop_oauth_state, set_oauth_state, set_session
from app.db.session import SessionLocal
from app.models.user import User
from app.services.image_service import avatar_url

logger = logging.getLogger(__name__)
discord_logger = logging.getLogger("discord")

DISCORD_TIMEOUT = 10.0


def build_authorize_url(state: str) -> str:
    params = {
        "client_id": settings.DISCORD_CLIENT_ID,
        "redirect_uri": settings.DISCORD_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(DISCORD_SCOPES),
        "state": state,
        "prompt": "none",
    }
    return f"{DISCORD_AUTHORIZE_URL}?{urlencode(params)}"


def start_login() -> Dict[str, str]:
    """Authorization URL; the state is kept in Redis for five minutes"""
    if not settings.DISCORD_CLIENT_ID or not settings.DISCORD_CLIENT_SECRET:
        raise CollaboratorUnavailableError("Discord OAuth credentials not configured")

    state = secrets.token_urlsafe(32)
    set_oauth_state(state, {"created_at": datetime.now(timezone.utc).isoformat()})
    return {"url": build_authorize_url(state)}


def exchange_code(code: str) -> Dict[str, Any]:
    try:
        response = httpx.post(
            DISCORD_TOKEN_URL,
            data={
                "client_id": settings.DISCORD_CLIENT_ID,
                "client_secret": settings.DISCORD_CLIENT_SECRET,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": settings.DISCORD_REDIRECT_URI,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=DISCORD_TIMEOUT,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        discord_logger.warning(f"Discord token exchange rejected: {e.response.status_code} {e.response.text[:200]}")
        raise ValidationError("Discord rejected the authorization code") from e
    except httpx.HTTPError as e:
        discord_logger.error(f"Discord token exchange failed: {e}")
        raise CollaboratorUnavailableError("Discord is unreachable") from e
    return response.json()


def _discord_get(url: str, access_token: str) -> Any:
    try:
        response = httpx.get(
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=DISCORD_TIMEOUT,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        discord_logger.warning(f"Discord request to {url} failed: {e}")
        raise CollaboratorUnavailableError("Failed to fetch data from Discord") from e
    return response.json()


def fetch_discord_user(access_token: str) -> Dict[str, Any]:
    return _discord_get(DISCORD_USER_URL, access_token)


def fetch_user_guild_ids(access_token: str) -> List[str]:
    guilds = _discord_get(DISCORD_USER_GUILDS_URL, access_token)
    return [str(g["id"]) for g in guilds if isinstance(g, dict) and g.get("id")]


def upsert_user(profile: Dict[str, Any], tokens: Dict[str, Any], guild_ids: Optional[List[str]], db: Session) -> User:
    discord_id = str(profile["id"])
    user = get_user_by_discord_id(discord_id, db)
    if not user:
        user = User(discord_id=discord_id, guilds=[])
        db.add(user)
        logger.info(f"New Discord user {discord_id}")

    user.username = profile.get("global_name") or profile.get("username")
    user.discriminator = profile.get("discriminator")
    user.avatar = profile.get("avatar")
    user.email = profile.get("email") or user.email
    save_discord_tokens(user, tokens.get("access_token"), tokens.get("refresh_token"))

    if guild_ids is not None:
        user.guilds = guild_ids
        user.guilds_last_sync = datetime.now(timezone.utc)

    db.commit()
    db.refresh(user)
    return user


def complete_login(code: str, state: str, db: Session) -> Tuple[User, str]:
    """Finish the OAuth flow and open a session

    Returns the user and the new session id.
    """
    if not pop_oauth_state(state):
        login_attempts_counter.labels(status="failure", method="discord").inc()
        raise ValidationError("Invalid or expired OAuth state")

    try:
        tokens = exchange_code(code)
        if not tokens.get("access_token"):
            raise CollaboratorUnavailableError("Discord returned no access token")
        profile = fetch_discord_user(tokens["access_token"])
        if not profile.get("id"):
            raise CollaboratorUnavailableError("Discord returned no user id")
    except (ValidationError, CollaboratorUnavailableError):
        login_attempts_counter.labels(status="failure", method="discord").inc()
        raise

    # A guild fetch failure must not block login; the next sync retries
    try:
        guild_ids = fetch_user_guild_ids(tokens["access_token"])
    except CollaboratorUnavailableError:
        guild_ids = None

    user = upsert_user(profile, tokens, guild_ids, db)

    session_id = secrets.token_urlsafe(32)
    set_session(session_id, user.id)
    login_attempts_counter.labels(status="success", method="discord").inc()
    logger.info(f"User logged in via Discord: {user.discord_id} (ID: {user.id})")
    return user, session_id


def needs_guild_sync(user: User, now: Optional[datetime] = None) -> bool:
    if not user.guilds or user.guilds_last_sync is None:
        return True
    now = now or datetime.now(timezone.utc)
    last_sync = user.guilds_last_sync
    if last_sync.tzinfo is None:
        last_sync = last_sync.replace(tzinfo=timezone.utc)
    return now - last_sync > timedelta(hours=settings.GUILD_SYNC_INTERVAL_HOURS)


def sync_user_guilds(user_id: int) -> bool:
    """Refresh a user's guild list from Discord (runs as a background task)

    A failed fetch leaves the stored list untouched.
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return False

        access_token = get_discord_access_token(user)
        if not access_token:
            discord_logger.info(f"No usable Discord token for {user.discord_id}, skipping guild sync")
            return False

        try:
            guild_ids = fetch_user_guild_ids(access_token)
        except CollaboratorUnavailableError:
            return False

        update_user_guilds(user, guild_ids, db)
        discord_logger.info(f"Synced {len(guild_ids)} guilds for {user.discord_id}")
        return True
    finally:
        db.close()


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "discordId": user.discord_id,
        "username": user.username,
        "discriminator": user.discriminator,
        "avatar": user.avatar,
        "avatarUrl": avatar_url(user.discord_id, user.avatar, user.discriminator),
        "email": user.email,
        "guilds": user.guilds or [],
    }
