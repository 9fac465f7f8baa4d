"""Pydantic schemas for the Wordle API"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GameSubmission(BaseModel):
    """A finished game sent by the web client"""
    model_config = ConfigDict(populate_by_name=True)

    discord_id: Optional[str] = Field(None, alias="discordId")
    word_id: int = Field(..., alias="wordId")
    attempts: int
    guesses: List[str]
    solved: bool = False
    time_to_complete: Optional[int] = Field(None, alias="timeToComplete", ge=0)


class ResultImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    discord_id: str = Field(..., alias="discordId")
    word_id: int = Field(..., alias="wordId")
    guesses: List[str] = []
    solved: bool = False
    attempts: int = 0
