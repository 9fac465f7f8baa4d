"""Daily word service - exactly one puzzle per calendar day"""
import logging
import random
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

import pytz
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import CollaboratorUnavailableError
from app.core.metrics import daily_words_created_counter
from app.models.daily_word import DailyWord
from app.services.word_bank import get_word_bank

logger = logging.getLogger(__name__)

CREATE_ATTEMPTS = 3


def game_today(now: Optional[datetime] = None) -> date:
    """Current calendar day in the game's reference timezone

    The day boundary is the same for every player whatever the host locale.
    """
    tz = pytz.timezone(settings.WORDLE_TIMEZONE)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date()


def get_recent_words(db: Session, today: date, days: int) -> List[str]:
    """Words used on the last `days` days (today included)"""
    start = today - timedelta(days=days)
    rows = db.query(DailyWord.word).filter(DailyWord.date >= start).all()
    return [word for (word,) in rows]


def select_word(
    words: Sequence[str],
    recent_words: Sequence[str],
    word_id: int,
    mode: str = "random",
) -> str:
    """Pick a word not used recently, or any word when all were used recently"""
    recent = set(recent_words)
    candidates = [w for w in words if w not in recent]
    if not candidates:
        logger.warning("Every word was used within the recency window, allowing a repeat")
        candidates = list(words)

    if mode == "sequential":
        return candidates[(word_id - 1) % len(candidates)]
    return random.choice(candidates)


def get_daily_word(db: Session, day: date) -> Optional[DailyWord]:
    return db.query(DailyWord).filter(DailyWord.date == day).first()


def get_daily_word_by_id(db: Session, word_id: int) -> Optional[DailyWord]:
    return db.query(DailyWord).filter(DailyWord.word_id == word_id).first()


def get_or_create_daily_word(db: Session, today: Optional[date] = None) -> DailyWord:
    """Return today's puzzle, creating it on the first request of the day

    Concurrent creators race on the unique date column; the loser rolls back
    and reads the winner's row.
    """
    today = today or game_today()

    for _ in range(CREATE_ATTEMPTS):
        daily_word = get_daily_word(db, today)
        if daily_word:
            return daily_word

        max_id = db.query(func.max(DailyWord.word_id)).scalar()
        next_word_id = (max_id or 0) + 1
        recent_words = get_recent_words(db, today, settings.RECENT_WORDS_WINDOW_DAYS)
        word = select_word(get_word_bank(), recent_words, next_word_id, settings.WORD_SELECTION_MODE)

        daily_word = DailyWord(word_id=next_word_id, word=word, date=today)
        db.add(daily_word)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Daily word for {today} created concurrently, re-reading")
            continue

        db.refresh(daily_word)
        daily_words_created_counter.inc()
        logger.info(f"Generated daily word #{next_word_id} for {today} (avoided {len(recent_words)} recent words)")
        return daily_word

    daily_word = get_daily_word(db, today)
    if daily_word is None:
        raise CollaboratorUnavailableError(f"Could not create or read the daily word for {today}")
    return daily_word
