"""Shared fixtures for document intake tests."""

import os

# Must be set before config.py is imported anywhere
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ["SESSION_BACKEND"] = "memory"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("GROQ_API_KEY", None)

from types import SimpleNamespace
from typing import List, Union

import pytest


class FakeCompletions:
    """Stands in for AsyncGroq().chat.completions; replies are consumed in order."""

    def __init__(self, replies: List[Union[str, Exception]]):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeGroq:
    def __init__(self, replies: List[Union[str, Exception]]):
        self.chat = SimpleNamespace(completions=FakeCompletions(replies))

    @property
    def calls(self):
        return self.chat.completions.calls


@pytest.fixture
def fake_groq():
    def _make(*replies):
        return FakeGroq(list(replies))
    return _make


@pytest.fixture
def png_bytes() -> bytes:
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
