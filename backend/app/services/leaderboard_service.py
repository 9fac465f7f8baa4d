"""Leaderboard ranking"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.helpers import get_usernames
from app.models.player_stats import PlayerStats
from app.services.stats_service import win_percentage

UNKNOWN_USERNAME = "Unknown User"


def rank_key(entry: Dict[str, Any]):
    return (-entry["winPercentage"], -entry["currentStreak"], -entry["totalGames"])


def top_players(db: Session, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Best players by win rate among those with enough games

    Ties break on current streak, then on games played.
    """
    limit = limit if limit and limit > 0 else settings.LEADERBOARD_DEFAULT_LIMIT

    rows = db.query(PlayerStats).filter(
        PlayerStats.total_games >= settings.LEADERBOARD_MIN_GAMES
    ).all()

    entries = [
        {
            "discordId": stats.discord_id,
            "winPercentage": win_percentage(stats.total_wins, stats.total_games),
            "currentStreak": stats.current_streak,
            "totalGames": stats.total_games,
        }
        for stats in rows
    ]
    entries.sort(key=rank_key)
    entries = entries[:limit]

    usernames = get_usernames([e["discordId"] for e in entries], db)
    return [
        {
            "discordId": e["discordId"],
            "username": usernames.get(e["discordId"], UNKNOWN_USERNAME),
            "winPercentage": e["winPercentage"],
            "currentStreak": e["currentStreak"],
            "totalGames": e["totalGames"],
        }
        for e in entries
    ]
