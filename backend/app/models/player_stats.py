"""PlayerStats model"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Date, DateTime, Integer, String

from app.models.base import Base


def empty_distribution():
    return [0, 0, 0, 0, 0, 0]


class PlayerStats(Base):
    """Aggregate record per player, derived from their game records"""
    __tablename__ = "wordle_player_stats"

    id = Column(Integer, primary_key=True, index=True)
    discord_id = Column(String(32), unique=True, nullable=False, index=True)
    total_games = Column(Integer, default=0, nullable=False)
    total_wins = Column(Integer, default=0, nullable=False)
    current_streak = Column(Integer, default=0, nullable=False)
    max_streak = Column(Integer, default=0, nullable=False)
    # Index 0 counts wins in one attempt, index 5 wins in six
    guess_distribution = Column(JSON, nullable=False, default=empty_distribution)
    last_played_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
