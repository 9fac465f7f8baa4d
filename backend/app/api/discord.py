"""Discord bot API routes - server registry and notification delivery

Every route here is called by the bot with the shared bearer token.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import require_bot_token
from app.db.session import get_db
from app.schemas.discord import (
    GameResultNotify, ProcessedNotifications, ServerRegistration,
    ServerSettingsUpdate, ServerUsersUpdate, WordleChannelUpdate
)
from app.services import notification_service, server_service

router = APIRouter(prefix="/api/discord", tags=["discord"], dependencies=[Depends(require_bot_token)])
logger = logging.getLogger(__name__)


@router.post("/servers")
def register_server(request_data: ServerRegistration, db: Session = Depends(get_db)):
    server = server_service.register_server(
        request_data.server_id,
        request_data.server_name,
        request_data.owner_id,
        db,
        icon_url=request_data.icon_url,
        member_count=request_data.member_count
    )
    return {"success": True, "server": server_service.server_to_dict(server)}


@router.delete("/servers/{server_id}/leave")
def leave_server(server_id: str, db: Session = Depends(get_db)):
    server_service.leave_server(server_id, db)
    return {"success": True, "message": "Server marked as inactive"}


@router.put("/servers/{server_id}/users")
def update_server_users(server_id: str, request_data: ServerUsersUpdate, db: Session = Depends(get_db)):
    users = [member.model_dump(by_alias=True) for member in request_data.users]
    stats = server_service.update_server_users(server_id, users, db)
    return {"success": True, "message": "Server users updated", "stats": stats}


@router.put("/servers/{server_id}/wordle-channel")
def set_wordle_channel(server_id: str, request_data: WordleChannelUpdate, db: Session = Depends(get_db)):
    server = server_service.set_wordle_channel(server_id, request_data.channel_id, db)
    return {
        "success": True,
        "message": f"Wordle channel set: {request_data.channel_name or request_data.channel_id}",
        "wordleChannelId": server.wordle_channel_id,
    }


@router.patch("/servers/{server_id}/settings")
def update_server_settings(server_id: str, request_data: ServerSettingsUpdate, db: Session = Depends(get_db)):
    server = server_service.set_auto_notify(server_id, request_data.auto_notify, db)
    return {"success": True, "server": server_service.server_to_dict(server)}


@router.get("/servers")
def active_servers(db: Session = Depends(get_db)):
    servers = server_service.list_active_servers(db)
    return {
        "success": True,
        "servers": [server_service.server_to_dict(s) for s in servers],
        "totalActive": len(servers),
    }


@router.post("/game-result")
def notify_game_result(request_data: GameResultNotify, db: Session = Depends(get_db)):
    """Queue a notification for a game that is already recorded"""
    notification = notification_service.notify_game_result(request_data.discord_id, request_data.word_id, db)
    if notification is None:
        return {"success": True, "message": "No shared server with a Wordle channel", "queued": False}
    return {"success": True, "queued": True, "notificationId": str(notification.id)}


@router.get("/users/active-with-notifications")
def active_users_with_notifications(db: Session = Depends(get_db)):
    users = notification_service.players_with_pending(db)
    return {"success": True, "users": users, "count": len(users)}


@router.get("/users/{discord_id}/common-servers")
def common_servers(discord_id: str, db: Session = Depends(get_db)):
    """Pending work for the servers this player belongs to"""
    return {"servers": notification_service.pending_for_player_groups(discord_id, db)}


@router.get("/servers/notifications")
def server_notifications(db: Session = Depends(get_db)):
    """Pending work for every server"""
    return {"servers": notification_service.pending_for_all_servers(db)}


@router.post("/notifications/processed")
def mark_notifications_processed(request_data: ProcessedNotifications, db: Session = Depends(get_db)):
    requested = len(request_data.notification_ids)
    processed = notification_service.mark_processed(request_data.notification_ids, db)
    return {
        "success": True,
        "processed": processed,
        "requested": requested,
        "message": f"{processed} notification(s) marked as processed",
    }
