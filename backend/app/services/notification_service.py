"""Notification service - pending game results and their fan-out per Discord server

A finished game leaves one pending notification. The Discord bot polls for
work; every eligible server receives either that single result or, when
several players of the same server finished meanwhile, one merged payload.
The bot confirms what it posted and those rows are marked processed.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ImageCompositionError, ImageRenderError, NotFoundError, ValidationError
from app.core.metrics import (
    image_composition_failures_counter, notifications_created_counter,
    notifications_processed_counter, notifications_served_counter
)
from app.core.otel import get_tracer
from app.db.helpers import get_player_group_ids, get_user_by_discord_id
from app.db.redis import acquire_destination_guard
from app.models.daily_word import DailyWord
from app.models.discord_server import DiscordServer
from app.models.game_record import GameRecord
from app.models.pending_notification import PendingNotification
from app.models.user import User
from app.services.guess_evaluator import evaluate_guesses, format_time_to_complete, notification_grid
from app.services.image_service import avatar_url, combine_base64_images, render_player_result, to_base64
from app.services.stats_service import get_streak

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def eligible_destinations(db: Session, group_ids: Optional[Iterable[str]] = None) -> List[DiscordServer]:
    """Active servers with a result channel and auto-notify on

    When group_ids is given only those servers are considered.
    """
    query = db.query(DiscordServer).filter(
        DiscordServer.is_active.is_(True),
        DiscordServer.wordle_channel_id.isnot(None),
        DiscordServer.wordle_channel_id != "",
        DiscordServer.auto_notify.is_(True)
    )
    if group_ids is not None:
        group_ids = list(group_ids)
        if not group_ids:
            return []
        query = query.filter(DiscordServer.server_id.in_(group_ids))
    return query.order_by(DiscordServer.server_id.asc()).all()


def pending_notifications(db: Session, discord_ids: Optional[Sequence[str]] = None) -> List[PendingNotification]:
    """Unprocessed notifications that have not expired, oldest first"""
    query = db.query(PendingNotification).filter(
        PendingNotification.is_processed.is_(False),
        PendingNotification.expires_at > _now()
    )
    if discord_ids is not None:
        query = query.filter(PendingNotification.discord_id.in_(list(discord_ids)))
    return query.order_by(PendingNotification.created_at.asc(), PendingNotification.id.asc()).all()


def players_with_pending(db: Session) -> List[str]:
    rows = db.query(PendingNotification.discord_id).filter(
        PendingNotification.is_processed.is_(False),
        PendingNotification.expires_at > _now()
    ).distinct().all()
    return sorted(discord_id for (discord_id,) in rows)


def create_pending_notification(
    user: User,
    daily_word: DailyWord,
    record: GameRecord,
    streak: int,
    db: Session,
) -> Optional[PendingNotification]:
    """Queue a finished game for the bot

    Returns None when the player shares no eligible server with the bot.
    The image is best effort; the notification is stored without one if
    rendering fails.
    """
    group_ids = get_player_group_ids(user.discord_id, db)
    if not eligible_destinations(db, group_ids):
        logger.debug(f"No eligible server for {user.discord_id}, skipping notification")
        return None

    image = None
    try:
        rows = evaluate_guesses(record.guesses or [], daily_word.word)
        image = to_base64(render_player_result(rows, user.discord_id, user.avatar, user.discriminator))
    except ImageRenderError as e:
        logger.warning(f"Result image failed for {user.discord_id} on #{record.word_id}: {e}")

    now = _now()
    notification = PendingNotification(
        discord_id=user.discord_id,
        word_id=record.word_id,
        username=user.display_name,
        avatar_url=avatar_url(user.discord_id, user.avatar, user.discriminator),
        grid=notification_grid(record.guesses or [], daily_word.word),
        image=image,
        attempts=record.attempts,
        time_to_complete=record.time_to_complete,
        streak=streak,
        date=record.date.isoformat(),
        solved=record.solved,
        is_processed=False,
        created_at=now,
        expires_at=now + timedelta(hours=settings.NOTIFICATION_TTL_HOURS),
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    notifications_created_counter.inc()
    logger.info(f"Queued notification {notification.id} for {user.discord_id} (#{record.word_id})")
    return notification


def notify_game_result(discord_id: str, word_id: int, db: Session) -> Optional[PendingNotification]:
    """Queue a notification for a game that is already recorded

    Reuses a still-pending notification for the same game instead of adding
    a second one.
    """
    user = get_user_by_discord_id(discord_id, db)
    if not user:
        raise NotFoundError("User not found")

    daily_word = db.query(DailyWord).filter(DailyWord.word_id == word_id).first()
    if not daily_word:
        raise NotFoundError("Daily word not found")

    record = db.query(GameRecord).filter(
        GameRecord.discord_id == discord_id,
        GameRecord.word_id == word_id
    ).first()
    if not record:
        raise NotFoundError("No recorded game for this player and word")

    existing = db.query(PendingNotification).filter(
        PendingNotification.discord_id == discord_id,
        PendingNotification.word_id == word_id,
        PendingNotification.is_processed.is_(False),
        PendingNotification.expires_at > _now()
    ).first()
    if existing:
        return existing

    return create_pending_notification(user, daily_word, record, get_streak(discord_id, db), db)


def _round1(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def single_payload(notification: PendingNotification) -> Dict[str, Any]:
    return {
        "username": notification.username,
        "avatar": notification.avatar_url,
        "grid": notification.grid,
        "image": notification.image,
        "attempts": notification.attempts,
        "time": format_time_to_complete(notification.time_to_complete),
        "streak": notification.streak,
        "puzzle": notification.word_id,
        "date": notification.date,
        "solved": notification.solved,
        "timeToComplete": notification.time_to_complete,
        "isGrouped": False,
        "notificationId": str(notification.id),
    }


def grouped_payload(notifications: Sequence[PendingNotification]) -> Dict[str, Any]:
    """Merge several results for one server into a single payload

    Raises:
        ImageCompositionError: if the attached images cannot be combined
    """
    first = notifications[0]
    solved = [n for n in notifications if n.solved]
    players: List[str] = []
    names: List[str] = []
    for n in notifications:
        if n.discord_id not in players:
            players.append(n.discord_id)
            names.append(n.username)

    images = [n.image for n in notifications if n.image]
    image = combine_base64_images(images) if images else None

    avg_attempts = _round1(sum(n.attempts for n in solved) / len(solved)) if solved else 0

    return {
        "username": ", ".join(names),
        "avatar": first.avatar_url,
        "grid": "\n\n".join(f"**{n.username}**\n{n.grid}" for n in notifications),
        "image": image,
        "attempts": avg_attempts,
        "time": None,
        "streak": max(n.streak for n in notifications),
        "puzzle": first.word_id,
        "date": first.date,
        "solved": bool(solved),
        "timeToComplete": None,
        "isGrouped": True,
        "gamesCount": len(notifications),
        "playersCount": len(players),
        "solvedCount": len(solved),
        "avgAttempts": avg_attempts,
        "notificationIds": [str(n.id) for n in notifications],
    }


def destination_payload(notifications: Sequence[PendingNotification]) -> Dict[str, Any]:
    """Payload for one server; composition failure serves the oldest result alone

    The others stay pending and are picked up by a later poll.
    """
    if len(notifications) == 1:
        notifications_served_counter.labels(kind="single").inc()
        return single_payload(notifications[0])

    try:
        payload = grouped_payload(notifications)
        notifications_served_counter.labels(kind="grouped").inc()
        return payload
    except ImageCompositionError as e:
        image_composition_failures_counter.inc()
        logger.warning(f"Image composition failed for {len(notifications)} notifications, serving first only: {e}")
        notifications_served_counter.labels(kind="fallback").inc()
        return single_payload(notifications[0])


def aggregate(
    notifications: Sequence[PendingNotification],
    destinations: Sequence[DiscordServer],
    membership: Dict[str, Set[str]],
) -> List[Dict[str, Any]]:
    """Group notifications under every destination their author belongs to"""
    servers = []
    for server in destinations:
        subset = [n for n in notifications if server.server_id in membership.get(n.discord_id, set())]
        if not subset:
            continue
        if not acquire_destination_guard(server.server_id):
            logger.info(f"Server {server.server_id} served less than {settings.DESTINATION_GUARD_SECONDS}s ago, skipping")
            continue
        servers.append({
            "serverId": server.server_id,
            "channelId": server.wordle_channel_id,
            "notificationData": destination_payload(subset),
        })
    return servers


def _membership(notifications: Sequence[PendingNotification], db: Session) -> Dict[str, Set[str]]:
    membership: Dict[str, Set[str]] = {}
    for notification in notifications:
        if notification.discord_id not in membership:
            membership[notification.discord_id] = get_player_group_ids(notification.discord_id, db)
    return membership


def pending_for_player_groups(discord_id: str, db: Session) -> List[Dict[str, Any]]:
    """Work for the servers the given player belongs to"""
    with tracer.start_as_current_span("notifications.pending_for_player_groups"):
        destinations = eligible_destinations(db, get_player_group_ids(discord_id, db))
        if not destinations:
            return []
        notifications = pending_notifications(db)
        return aggregate(notifications, destinations, _membership(notifications, db))


def pending_for_all_servers(db: Session) -> List[Dict[str, Any]]:
    """Work for every server with at least one member's pending result"""
    with tracer.start_as_current_span("notifications.pending_for_all_servers"):
        notifications = pending_notifications(db)
        if not notifications:
            return []
        membership = _membership(notifications, db)
        all_groups = set().union(*membership.values())
        destinations = eligible_destinations(db, all_groups)
        return aggregate(notifications, destinations, membership)


def mark_processed(notification_ids: Sequence[Any], db: Session) -> int:
    """Flag notifications as delivered; already-processed ids are left alone

    Returns the number of rows that changed.
    """
    if not notification_ids:
        raise ValidationError("notificationIds must be a non-empty list")

    ids = set()
    for raw in notification_ids:
        try:
            ids.add(int(raw))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed notification id {raw!r}")

    if not ids:
        return 0

    processed = db.query(PendingNotification).filter(
        PendingNotification.id.in_(ids),
        PendingNotification.is_processed.is_(False)
    ).update(
        {PendingNotification.is_processed: True, PendingNotification.processed_at: _now()},
        synchronize_session=False
    )
    db.commit()
    notifications_processed_counter.inc(processed)
    logger.info(f"Marked {processed}/{len(notification_ids)} notifications as processed")
    return processed


def delete_stale_notifications(db: Session, retention_hours: Optional[int] = None) -> int:
    """Physically remove expired rows and rows processed before the retention window"""
    retention_hours = retention_hours or settings.NOTIFICATION_TTL_HOURS
    now = _now()
    expired = db.query(PendingNotification).filter(
        PendingNotification.expires_at <= now
    ).delete(synchronize_session=False)
    processed = db.query(PendingNotification).filter(
        PendingNotification.is_processed.is_(True),
        PendingNotification.processed_at < now - timedelta(hours=retention_hours)
    ).delete(synchronize_session=False)
    db.commit()
    return expired + processed
