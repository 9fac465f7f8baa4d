"""PendingNotification model"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from app.models.base import Base


class PendingNotification(Base):
    """A finished game waiting to be posted by the Discord bot"""
    __tablename__ = "wordle_pending_notifications"

    id = Column(Integer, primary_key=True, index=True)
    discord_id = Column(String(32), nullable=False)
    word_id = Column(Integer, nullable=False)
    username = Column(String(255), nullable=False)
    avatar_url = Column(String(512), nullable=True)
    grid = Column(Text, nullable=False)
    image = Column(Text, nullable=True)  # base64 PNG
    attempts = Column(Integer, nullable=False)
    time_to_complete = Column(Integer, nullable=True)  # milliseconds
    streak = Column(Integer, default=0, nullable=False)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    solved = Column(Boolean, nullable=False)
    is_processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        Index('ix_wordle_pending_notifications_player_processed', 'discord_id', 'is_processed'),
        Index('ix_wordle_pending_notifications_processed', 'is_processed'),
    )
