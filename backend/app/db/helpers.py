"""Database helper functions shared by services"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from app.models.discord_user_server import DiscordUserServer
from app.models.user import User
from app.utils.encryption import decrypt, encrypt

logger = logging.getLogger(__name__)


def get_user_by_discord_id(discord_id: str, db: Session) -> Optional[User]:
    return db.query(User).filter(User.discord_id == discord_id).first()


def get_usernames(discord_ids: List[str], db: Session) -> dict:
    """Map discord ids to stored usernames (missing users are absent)"""
    if not discord_ids:
        return {}
    rows = db.query(User.discord_id, User.username).filter(User.discord_id.in_(discord_ids)).all()
    return {discord_id: username for discord_id, username in rows if username}


def get_player_group_ids(discord_id: str, db: Session) -> Set[str]:
    """Guilds a player belongs to

    Union of the guild list captured at OAuth time and the memberships the bot
    reports for its own servers.
    """
    group_ids: Set[str] = set()

    user = get_user_by_discord_id(discord_id, db)
    if user and user.guilds:
        group_ids.update(str(g) for g in user.guilds)

    rows = db.query(DiscordUserServer.server_id).filter(
        DiscordUserServer.discord_id == discord_id,
        DiscordUserServer.is_active.is_(True)
    ).all()
    group_ids.update(server_id for (server_id,) in rows)

    return group_ids


def save_discord_tokens(user: User, access_token: str, refresh_token: Optional[str] = None) -> None:
    """Store encrypted Discord credentials on the user (caller commits)"""
    user.access_token = encrypt(access_token) if access_token else None
    # Keep the previous refresh token when Discord does not rotate it
    if refresh_token:
        user.refresh_token = encrypt(refresh_token)


def get_discord_access_token(user: User) -> Optional[str]:
    """Decrypted access token, or None when missing or undecryptable"""
    if not user.access_token:
        return None
    try:
        return decrypt(user.access_token)
    except ValueError as e:
        logger.warning(f"Could not decrypt Discord token for user {user.discord_id}: {e}")
        return None


def update_user_guilds(user: User, guild_ids: List[str], db: Session) -> None:
    user.guilds = [str(g) for g in guild_ids]
    user.guilds_last_sync = datetime.now(timezone.utc)
    db.commit()
