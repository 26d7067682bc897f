"""Tests for role translation."""

import pytest

from app.constants.roles import ExternalRole, MessageRole
from app.core.errors import ValidationError
from app.core.roles import parse_role, to_external, to_internal


def test_to_internal():
    assert to_internal("user") == MessageRole.HUMAN
    assert to_internal("assistant") == MessageRole.AI


def test_to_external():
    assert to_external("human") == ExternalRole.USER
    assert to_external("ai") == ExternalRole.ASSISTANT


@pytest.mark.parametrize("role", ["human", "system", "", "USER"])
def test_to_internal_rejects_unknown(role):
    with pytest.raises(ValidationError):
        to_internal(role)


@pytest.mark.parametrize("role", ["user", "tool"])
def test_to_external_rejects_unknown(role):
    with pytest.raises(ValidationError):
        to_external(role)


@pytest.mark.parametrize(
    "role,expected",
    [
        ("user", MessageRole.HUMAN),
        ("assistant", MessageRole.AI),
        ("human", MessageRole.HUMAN),
        ("ai", MessageRole.AI),
    ],
)
def test_parse_role_accepts_both_vocabularies(role, expected):
    assert parse_role(role) == expected


def test_parse_role_rejects_unknown():
    with pytest.raises(ValidationError):
        parse_role("system")
