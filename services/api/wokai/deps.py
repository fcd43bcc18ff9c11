"""FastAPI dependencies for the Wok.AI API.

Provides:
- The application's session manager
- Cook session resolution by path id
"""

from fastapi import Depends, HTTPException, Request

from .services.cook_session import CookSession, SessionManager, SessionNotFound


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_cook_session(
    session_id: str,
    sessions: SessionManager = Depends(get_sessions),
) -> CookSession:
    """Resolve a live cook session.

    Raises:
        HTTPException 404 if the session does not exist or has ended
    """
    try:
        return sessions.get(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
