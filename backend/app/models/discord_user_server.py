"""DiscordUserServer model"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint

from app.models.base import Base


class DiscordUserServer(Base):
    """Guild membership as reported by the bot"""
    __tablename__ = "discord_user_servers"

    id = Column(Integer, primary_key=True, index=True)
    discord_id = Column(String(32), nullable=False, index=True)
    server_id = Column(String(32), nullable=False)
    server_name = Column(String(255), nullable=False)
    nickname = Column(String(255), nullable=True)
    roles = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_server_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    left_server_at = Column(DateTime(timezone=True), nullable=True)
    last_seen = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        UniqueConstraint('discord_id', 'server_id', name='uq_discord_user_servers_player_server'),
        Index('ix_discord_user_servers_player_active', 'discord_id', 'is_active'),
        Index('ix_discord_user_servers_server_active', 'server_id', 'is_active'),
    )
