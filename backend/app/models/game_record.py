"""GameRecord model"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Index, Integer, String, UniqueConstraint

from app.models.base import Base


class GameRecord(Base):
    """A finished game; one per player per puzzle"""
    __tablename__ = "wordle_game_records"

    id = Column(Integer, primary_key=True, index=True)
    discord_id = Column(String(32), nullable=False)
    word_id = Column(Integer, nullable=False)
    date = Column(Date, nullable=False, index=True)
    attempts = Column(Integer, nullable=False)  # 0 = failed
    guesses = Column(JSON, nullable=False, default=list)
    solved = Column(Boolean, default=False, nullable=False)
    time_to_complete = Column(Integer, nullable=True)  # milliseconds
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        UniqueConstraint('discord_id', 'word_id', name='uq_wordle_game_records_player_word'),
        Index('ix_wordle_game_records_player_date', 'discord_id', 'date'),
    )
