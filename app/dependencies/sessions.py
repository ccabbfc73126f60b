"""
Session dependencies.
"""

from fastapi import HTTPException, Request

from app.core.sessions import RequestSession, SessionStore


def get_session(request: Request) -> RequestSession:
    session = getattr(request.state, "session", None)
    if session is None:
        raise HTTPException(status_code=500, detail="Session middleware not installed.")
    return session


def get_session_store(request: Request) -> SessionStore:
    if not hasattr(request.app.state, "session_store"):
        raise HTTPException(status_code=500, detail="Session store not initialized.")
    return request.app.state.session_store
