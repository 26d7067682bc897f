from app.services.backup_service import BackupService
from app.services.chat_service import ChatService
from app.services.session_message_service import SessionMessageService
from app.services.session_service import SessionService

__all__ = [
    "BackupService",
    "ChatService",
    "SessionMessageService",
    "SessionService",
]
