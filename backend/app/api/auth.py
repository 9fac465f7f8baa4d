"""Auth API routes (Discord OAuth)"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import WordleError
from app.core.security import clear_auth_cookie, set_auth_cookie
from app.db.redis import delete_session, get_session
from app.db.session import get_db
from app.models.user import User
from app.services.discord_service import complete_login, start_login, user_to_dict

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.get("/discord/login")
def discord_login():
    """Start the Discord OAuth flow"""
    return start_login()


@router.get("/discord/callback")
def discord_callback(code: str, state: str, request: Request, db: Session = Depends(get_db)):
    """Discord OAuth callback - creates or logs in the user, then back to the frontend"""
    try:
        _, session_id = complete_login(code, state, db)
    except WordleError as e:
        logger.warning(f"Discord login failed: {e.message}")
        return RedirectResponse(url=f"{settings.FRONTEND_URL}/login?error=discord_login_failed")

    response = RedirectResponse(url=f"{settings.FRONTEND_URL}/wordle?discord_login=success")
    set_auth_cookie(response, session_id, request)
    return response


@router.get("/me")
def get_me(request: Request, db: Session = Depends(get_db)):
    """Current user, or null when not logged in"""
    session_id = request.cookies.get("session_id")
    user_id = get_session(session_id) if session_id else None
    if not user_id:
        return {"user": None}

    user = db.query(User).filter(User.id == user_id).first()
    return {"user": user_to_dict(user) if user else None}


@router.post("/logout")
def logout(request: Request, response: Response):
    """Logout user"""
    session_id = request.cookies.get("session_id")
    if session_id:
        delete_session(session_id)
        clear_auth_cookie(response, request)
    return {"message": "Logged out"}
