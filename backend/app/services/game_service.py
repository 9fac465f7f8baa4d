"""Game service - recording finished games"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.metrics import games_submitted_counter
from app.db.helpers import get_user_by_discord_id
from app.models.game_record import GameRecord
from app.models.player_stats import PlayerStats
from app.services import notification_service
from app.services.daily_word_service import game_today, get_daily_word, get_daily_word_by_id
from app.services.guess_evaluator import MAX_ATTEMPTS, evaluate_guesses, share_text
from app.services.image_service import render_player_result, to_base64
from app.services.stats_service import apply_game_result, get_or_create_stats
from app.services.word_bank import normalize_word

logger = logging.getLogger(__name__)


def clean_guesses(guesses: Sequence[Any]) -> List[str]:
    """Drop empty, partial or non-alphabetic guesses, uppercase the rest"""
    cleaned = []
    for guess in guesses or []:
        if isinstance(guess, str):
            word = normalize_word(guess)
            if word:
                cleaned.append(word)
    return cleaned


def validate_submission(attempts: int, solved: bool) -> None:
    if attempts is None or not 0 <= attempts <= MAX_ATTEMPTS:
        raise ValidationError(f"Attempts must be between 0 and {MAX_ATTEMPTS}")
    if solved and attempts < 1:
        raise ValidationError("A solved game needs at least one attempt")


def submit_game(
    discord_id: str,
    word_id: int,
    attempts: int,
    guesses: Sequence[Any],
    solved: bool,
    time_to_complete: Optional[int],
    db: Session,
) -> Tuple[GameRecord, PlayerStats]:
    """Record a finished game, update the player's stats, queue a notification

    Raises:
        ValidationError: attempts out of range or unknown puzzle
        NotFoundError: unknown player
        ConflictError: the player already played this puzzle
    """
    validate_submission(attempts, solved)

    daily_word = get_daily_word_by_id(db, word_id)
    if not daily_word:
        raise ValidationError("Invalid wordId")

    existing = db.query(GameRecord.id).filter(
        GameRecord.discord_id == discord_id,
        GameRecord.word_id == word_id
    ).first()
    if existing:
        games_submitted_counter.labels(outcome="duplicate").inc()
        raise ConflictError("User has already played this word")

    user = get_user_by_discord_id(discord_id, db)
    if not user:
        raise NotFoundError("User not found")

    record = GameRecord(
        discord_id=discord_id,
        word_id=word_id,
        date=daily_word.date,
        attempts=attempts,
        guesses=clean_guesses(guesses),
        solved=bool(solved),
        time_to_complete=time_to_complete,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        games_submitted_counter.labels(outcome="duplicate").inc()
        raise ConflictError("User has already played this word")
    db.refresh(record)

    # Stats follow the record; a crash in between is repaired by rebuild_stats
    stats = get_or_create_stats(discord_id, db)
    apply_game_result(stats, record.attempts, record.solved, record.date)
    db.commit()
    db.refresh(stats)

    games_submitted_counter.labels(outcome="solved" if record.solved else "failed").inc()
    logger.info(f"Recorded game #{word_id} for {discord_id}: solved={record.solved} attempts={record.attempts}")

    try:
        notification_service.create_pending_notification(user, daily_word, record, stats.current_streak, db)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to queue notification for {discord_id} on #{word_id}: {e}", exc_info=True)

    return record, stats


def played_today(discord_id: str, db: Session) -> Dict[str, Any]:
    today_word = get_daily_word(db, game_today())
    if not today_word:
        return {"hasPlayed": False, "gameResult": None}

    record = db.query(GameRecord).filter(
        GameRecord.discord_id == discord_id,
        GameRecord.word_id == today_word.word_id
    ).first()
    return {
        "hasPlayed": record is not None,
        "gameResult": {
            "attempts": record.attempts,
            "solved": record.solved,
            "guesses": record.guesses,
        } if record else None,
    }


def result_image(
    discord_id: str,
    word_id: int,
    guesses: Sequence[Any],
    solved: bool,
    attempts: int,
    db: Session,
) -> Dict[str, Any]:
    """Rendered PNG plus share text for a result

    Raises:
        NotFoundError: unknown player or puzzle
        ImageRenderError: rendering failed
    """
    user = get_user_by_discord_id(discord_id, db)
    if not user:
        raise NotFoundError("User not found")

    daily_word = get_daily_word_by_id(db, word_id)
    if not daily_word:
        raise NotFoundError("Daily word not found")

    cleaned = clean_guesses(guesses)
    rows = evaluate_guesses(cleaned, daily_word.word)
    image = render_player_result(rows, user.discord_id, user.avatar, user.discriminator)

    return {
        "success": True,
        "image": to_base64(image),
        "shareText": share_text(
            cleaned, daily_word.word, word_id, solved, attempts,
            settings.SHARE_TITLE, settings.SHARE_URL
        ),
        "wordId": word_id,
        "solved": solved,
        "attempts": attempts,
    }
