from functools import lru_cache

from fastapi import Depends

from app.services.backup_service import BackupService
from app.services.chat_service import ChatService, ReplyStreamer
from app.stores import get_conversation_store
from app.stores.base import ConversationStore
from app.workers.llm import build_llm_runner_from_env


@lru_cache(maxsize=1)
def get_reply_streamer() -> ReplyStreamer:
    """FastAPI dependency: the process-wide LLM runner."""
    return build_llm_runner_from_env()


def get_backup_service(
    store: ConversationStore = Depends(get_conversation_store),
) -> BackupService:
    return BackupService(store)


def get_chat_service(
    store: ConversationStore = Depends(get_conversation_store),
    runner: ReplyStreamer = Depends(get_reply_streamer),
) -> ChatService:
    return ChatService(store, runner)
