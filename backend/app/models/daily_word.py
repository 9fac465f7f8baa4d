"""DailyWord model"""
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Integer, String

from app.models.base import Base


class DailyWord(Base):
    """One puzzle per calendar day, append-only"""
    __tablename__ = "wordle_daily_words"

    id = Column(Integer, primary_key=True, index=True)
    word_id = Column(Integer, unique=True, nullable=False, index=True)
    word = Column(String(16), nullable=False)
    date = Column(Date, unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
