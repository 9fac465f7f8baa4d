"""Wordle API routes"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.security import get_current_player, require_bot_token, require_csrf
from app.db.session import get_db
from app.schemas.wordle import GameSubmission, ResultImageRequest
from app.services import game_service
from app.services.daily_word_service import get_or_create_daily_word
from app.services.leaderboard_service import top_players
from app.services.stats_service import get_or_create_stats, rebuild_stats, stats_to_dict

router = APIRouter(prefix="/api/wordle", tags=["wordle"])
logger = logging.getLogger(__name__)


@router.get("/daily-word")
def daily_word(db: Session = Depends(get_db)):
    """Today's puzzle, created on the first request of the day"""
    word = get_or_create_daily_word(db)
    return {"word": word.word, "date": word.date.isoformat(), "wordId": word.word_id}


@router.post("/game-stats", dependencies=[Depends(require_csrf)])
def submit_game_stats(
    submission: GameSubmission,
    player: Dict[str, Any] = Depends(get_current_player),
    db: Session = Depends(get_db)
):
    """Record the logged-in player's finished game"""
    if submission.discord_id and submission.discord_id != player["player_id"]:
        raise HTTPException(403, "Cannot submit a game for another player")

    game_service.submit_game(
        player["player_id"],
        submission.word_id,
        submission.attempts,
        submission.guesses,
        submission.solved,
        submission.time_to_complete,
        db
    )
    return {"success": True, "message": "Game stats saved successfully"}


@router.get("/stats/{discord_id}")
def get_stats(discord_id: str, db: Session = Depends(get_db)):
    return stats_to_dict(get_or_create_stats(discord_id, db))


@router.post("/stats/{discord_id}/rebuild", dependencies=[Depends(require_bot_token)])
def rebuild_player_stats(discord_id: str, db: Session = Depends(get_db)):
    """Replay a player's games to repair their aggregate"""
    return {"success": True, "stats": stats_to_dict(rebuild_stats(discord_id, db))}


@router.get("/leaderboard")
def leaderboard(limit: Optional[int] = Query(None, ge=1, le=100), db: Session = Depends(get_db)):
    return {"users": top_players(db, limit)}


@router.get("/played-today/{discord_id}")
def played_today(discord_id: str, db: Session = Depends(get_db)):
    return game_service.played_today(discord_id, db)


@router.post("/result-image")
def result_image(request_data: ResultImageRequest, db: Session = Depends(get_db)):
    """Rendered result PNG (base64) plus the emoji share text"""
    return game_service.result_image(
        request_data.discord_id,
        request_data.word_id,
        request_data.guesses,
        request_data.solved,
        request_data.attempts,
        db
    )
