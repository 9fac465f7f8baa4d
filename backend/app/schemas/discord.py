"""Pydantic schemas for the bot-facing Discord API"""
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ServerRegistration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server_id: str = Field(..., alias="serverId", min_length=1)
    server_name: str = Field(..., alias="serverName", min_length=1)
    owner_id: str = Field(..., alias="ownerId", min_length=1)
    icon_url: Optional[str] = Field(None, alias="iconUrl")
    member_count: Optional[int] = Field(None, alias="memberCount", ge=0)


class ServerMember(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    discord_id: Optional[str] = Field(None, alias="discordId")
    nickname: Optional[str] = None
    roles: List[str] = []


class ServerUsersUpdate(BaseModel):
    users: List[ServerMember]


class WordleChannelUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(..., alias="channelId", min_length=1)
    channel_name: Optional[str] = Field(None, alias="channelName")


class ServerSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    auto_notify: bool = Field(..., alias="autoNotify")


class GameResultNotify(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    discord_id: str = Field(..., alias="discordId", min_length=1)
    word_id: int = Field(..., alias="wordId")


class ProcessedNotifications(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notification_ids: List[Union[int, str]] = Field(..., alias="notificationIds")
