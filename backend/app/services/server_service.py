"""Server registry - the guilds the bot reports it has joined"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.models.discord_server import DiscordServer
from app.models.discord_user_server import DiscordUserServer

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_active_server(server_id: str, db: Session) -> DiscordServer:
    server = db.query(DiscordServer).filter(
        DiscordServer.server_id == server_id,
        DiscordServer.is_active.is_(True)
    ).first()
    if not server:
        raise NotFoundError("Server not found or inactive")
    return server


def register_server(
    server_id: str,
    server_name: str,
    owner_id: str,
    db: Session,
    icon_url: Optional[str] = None,
    member_count: Optional[int] = None,
) -> DiscordServer:
    """Create or reactivate a server record"""
    server = db.query(DiscordServer).filter(DiscordServer.server_id == server_id).first()
    if server:
        server.server_name = server_name
        server.owner_id = owner_id
        server.icon_url = icon_url
        if member_count is not None:
            server.member_count = member_count
        if not server.is_active:
            logger.info(f"Server {server_id} re-joined")
            server.joined_at = _now()
        server.is_active = True
        server.left_at = None
        server.last_activity = _now()
    else:
        server = DiscordServer(
            server_id=server_id,
            server_name=server_name,
            owner_id=owner_id,
            icon_url=icon_url,
            member_count=member_count or 0,
        )
        db.add(server)
        logger.info(f"Registered server {server_id} ({server_name})")

    db.commit()
    db.refresh(server)
    return server


def leave_server(server_id: str, db: Session) -> DiscordServer:
    """Mark the server inactive and drop its memberships"""
    server = db.query(DiscordServer).filter(DiscordServer.server_id == server_id).first()
    if not server:
        raise NotFoundError("Server not found")

    now = _now()
    server.is_active = False
    server.left_at = now
    db.query(DiscordUserServer).filter(
        DiscordUserServer.server_id == server_id,
        DiscordUserServer.is_active.is_(True)
    ).update(
        {DiscordUserServer.is_active: False, DiscordUserServer.left_server_at: now},
        synchronize_session=False
    )
    db.commit()
    logger.info(f"Bot left server {server_id}")
    return server


def update_server_users(server_id: str, users: List[Dict[str, Any]], db: Session) -> Dict[str, int]:
    """Upsert the member list the bot sees on a server"""
    server = get_active_server(server_id, db)

    # One row per player; a repeated discordId keeps its last entry
    members = {}
    for member in users:
        if member.get("discordId"):
            members[member["discordId"]] = member

    updated = 0
    created = 0
    now = _now()
    for discord_id, member in members.items():
        row = db.query(DiscordUserServer).filter(
            DiscordUserServer.discord_id == discord_id,
            DiscordUserServer.server_id == server_id
        ).first()
        if row:
            row.nickname = member.get("nickname") or row.nickname
            row.roles = list(member.get("roles") or [])
            row.is_active = True
            row.left_server_at = None
            row.last_seen = now
            updated += 1
        else:
            db.add(DiscordUserServer(
                discord_id=discord_id,
                server_id=server_id,
                server_name=server.server_name,
                nickname=member.get("nickname"),
                roles=list(member.get("roles") or []),
            ))
            created += 1

    server.member_count = len(users)
    server.last_activity = now
    db.commit()
    return {"updated": updated, "created": created, "total": len(users)}


def set_wordle_channel(server_id: str, channel_id: str, db: Session) -> DiscordServer:
    server = get_active_server(server_id, db)
    server.wordle_channel_id = channel_id
    server.last_activity = _now()
    db.commit()
    db.refresh(server)
    return server


def set_auto_notify(server_id: str, auto_notify: bool, db: Session) -> DiscordServer:
    server = get_active_server(server_id, db)
    server.auto_notify = auto_notify
    db.commit()
    db.refresh(server)
    return server


def list_active_servers(db: Session) -> List[DiscordServer]:
    return db.query(DiscordServer).filter(
        DiscordServer.is_active.is_(True)
    ).order_by(DiscordServer.last_activity.desc()).all()


def server_to_dict(server: DiscordServer) -> Dict[str, Any]:
    return {
        "serverId": server.server_id,
        "serverName": server.server_name,
        "iconUrl": server.icon_url,
        "memberCount": server.member_count,
        "wordleChannelId": server.wordle_channel_id,
        "autoNotify": server.auto_notify,
        "lastActivity": server.last_activity.isoformat() if server.last_activity else None,
    }
