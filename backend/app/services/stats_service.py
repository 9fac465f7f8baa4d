"""Stats service - per-player aggregates and their update rule"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.models.game_record import GameRecord
from app.models.player_stats import PlayerStats, empty_distribution
from app.services.guess_evaluator import MAX_ATTEMPTS

logger = logging.getLogger(__name__)


def win_percentage(total_wins: int, total_games: int) -> int:
    """Wins as a whole percentage, halves rounded up"""
    if total_games <= 0:
        return 0
    return (total_wins * 200 + total_games) // (2 * total_games)


def apply_game_result(stats: PlayerStats, attempts: int, solved: bool, day: date) -> PlayerStats:
    """Advance stats by one finished game (mutates and returns stats)

    Must run exactly once per game record.
    """
    if solved and not 1 <= attempts <= MAX_ATTEMPTS:
        raise ValidationError(f"A solved game needs between 1 and {MAX_ATTEMPTS} attempts")

    stats.total_games = (stats.total_games or 0) + 1

    if solved:
        stats.total_wins = (stats.total_wins or 0) + 1
        if stats.last_played_date is not None and stats.last_played_date == day - timedelta(days=1):
            stats.current_streak = (stats.current_streak or 0) + 1
        else:
            stats.current_streak = 1
        stats.max_streak = max(stats.max_streak or 0, stats.current_streak)

        # Reassign so SQLAlchemy notices the JSON change
        distribution = list(stats.guess_distribution or empty_distribution())
        distribution[attempts - 1] += 1
        stats.guess_distribution = distribution
    else:
        stats.current_streak = 0

    stats.last_played_date = day
    return stats


def get_or_create_stats(discord_id: str, db: Session) -> PlayerStats:
    """Stats row for a player, created zeroed on first access"""
    stats = db.query(PlayerStats).filter(PlayerStats.discord_id == discord_id).first()
    if stats:
        return stats

    stats = PlayerStats(
        discord_id=discord_id,
        total_games=0,
        total_wins=0,
        current_streak=0,
        max_streak=0,
        guess_distribution=empty_distribution(),
    )
    db.add(stats)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return db.query(PlayerStats).filter(PlayerStats.discord_id == discord_id).one()
    db.refresh(stats)
    return stats


def record_game(discord_id: str, attempts: int, solved: bool, day: date, db: Session) -> PlayerStats:
    stats = get_or_create_stats(discord_id, db)
    apply_game_result(stats, attempts, solved, day)
    db.commit()
    db.refresh(stats)
    return stats


def rebuild_stats(discord_id: str, db: Session) -> PlayerStats:
    """Recompute a player's stats by replaying their games in calendar order"""
    stats = get_or_create_stats(discord_id, db)
    stats.total_games = 0
    stats.total_wins = 0
    stats.current_streak = 0
    stats.max_streak = 0
    stats.guess_distribution = empty_distribution()
    stats.last_played_date = None

    games = db.query(GameRecord).filter(
        GameRecord.discord_id == discord_id
    ).order_by(GameRecord.date.asc(), GameRecord.word_id.asc()).all()

    for game in games:
        apply_game_result(stats, game.attempts, game.solved, game.date)

    db.commit()
    db.refresh(stats)
    logger.info(f"Rebuilt stats for {discord_id} from {len(games)} games")
    return stats


def stats_to_dict(stats: PlayerStats) -> Dict[str, Any]:
    distribution = stats.guess_distribution or empty_distribution()
    return {
        "totalGames": stats.total_games,
        "totalWins": stats.total_wins,
        "winPercentage": win_percentage(stats.total_wins, stats.total_games),
        "currentStreak": stats.current_streak,
        "maxStreak": stats.max_streak,
        "guessDistribution": {str(i + 1): count for i, count in enumerate(distribution)},
        "lastPlayedDate": stats.last_played_date.isoformat() if stats.last_played_date else None,
    }


def get_streak(discord_id: str, db: Session) -> int:
    stats: Optional[PlayerStats] = db.query(PlayerStats).filter(PlayerStats.discord_id == discord_id).first()
    return stats.current_streak if stats else 0
