"""User model"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from app.models.base import Base


class User(Base):
    """Players, identified by their Discord account"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    discord_id = Column(String(32), unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=True)
    discriminator = Column(String(8), nullable=True)
    avatar = Column(String(255), nullable=True)  # Discord avatar hash
    email = Column(String(255), nullable=True)
    access_token = Column(Text, nullable=True)  # Fernet-encrypted
    refresh_token = Column(Text, nullable=True)  # Fernet-encrypted
    guilds = Column(JSON, nullable=False, default=list)  # Discord guild ids
    guilds_last_sync = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def display_name(self) -> str:
        return self.username or f"User#{self.discord_id[-4:]}"
