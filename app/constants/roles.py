"""Message author roles: internal store vocabulary and the external API vocabulary."""

from enum import StrEnum


class MessageRole(StrEnum):
    """Roles as stored by every conversation backend."""

    HUMAN = "human"
    AI = "ai"


class ExternalRole(StrEnum):
    """Roles as seen by HTTP clients and export files."""

    USER = "user"
    ASSISTANT = "assistant"
