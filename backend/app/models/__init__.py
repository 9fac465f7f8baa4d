"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from app.models.user import User
from app.models.daily_word import DailyWord
from app.models.game_record import GameRecord
from app.models.player_stats import PlayerStats
from app.models.pending_notification import PendingNotification
from app.models.discord_server import DiscordServer
from app.models.discord_user_server import DiscordUserServer

# Export all for convenience
__all__ = [
    "User", "DailyWord", "GameRecord", "PlayerStats",
    "PendingNotification", "DiscordServer", "DiscordUserServer"
]
