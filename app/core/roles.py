"""Single translation point between external roles (user/assistant) and stored roles (human/ai)."""

from __future__ import annotations

from app.constants.roles import ExternalRole, MessageRole
from app.core.errors import ValidationError

_TO_INTERNAL: dict[ExternalRole, MessageRole] = {
    ExternalRole.USER: MessageRole.HUMAN,
    ExternalRole.ASSISTANT: MessageRole.AI,
}
_TO_EXTERNAL: dict[MessageRole, ExternalRole] = {v: k for k, v in _TO_INTERNAL.items()}


def to_internal(role: str) -> MessageRole:
    """Map 'user'/'assistant' to the stored role. Anything else is rejected."""
    try:
        return _TO_INTERNAL[ExternalRole(role)]
    except ValueError as e:
        raise ValidationError(f"Unknown role {role!r}") from e


def to_external(role: str) -> ExternalRole:
    """Map a stored role back to 'user'/'assistant'."""
    try:
        return _TO_EXTERNAL[MessageRole(role)]
    except ValueError as e:
        raise ValidationError(f"Unknown stored role {role!r}") from e


def parse_role(role: str) -> MessageRole:
    """Lenient parser for import files, which may carry either vocabulary."""
    if role in {r.value for r in MessageRole}:
        return MessageRole(role)
    return to_internal(role)
