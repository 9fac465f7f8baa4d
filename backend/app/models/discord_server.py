"""DiscordServer model"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.models.base import Base


class DiscordServer(Base):
    """A guild the bot has joined; the destination for result posts"""
    __tablename__ = "discord_servers"

    id = Column(Integer, primary_key=True, index=True)
    server_id = Column(String(32), unique=True, nullable=False, index=True)
    server_name = Column(String(255), nullable=False)
    icon_url = Column(String(512), nullable=True)
    owner_id = Column(String(32), nullable=False)
    wordle_channel_id = Column(String(32), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    auto_notify = Column(Boolean, default=True, nullable=False)
    language = Column(String(8), default="fr", nullable=False)
    timezone = Column(String(64), default="Europe/Paris", nullable=False)
    member_count = Column(Integer, default=0, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    left_at = Column(DateTime(timezone=True), nullable=True)
    last_activity = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
