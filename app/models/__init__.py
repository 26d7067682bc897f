from app.models.session import Session
from app.models.session_message import SessionMessage

__all__ = [
    "Session",
    "SessionMessage",
]
