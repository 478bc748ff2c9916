"""Shared test fixtures."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from fakes import FakeClock, FakeProvider
from llm_router.types import Message


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_provider(clock: FakeClock) -> Callable[..., FakeProvider]:
    def _make(name: str, **kwargs: Any) -> FakeProvider:
        kwargs.setdefault("clock", clock)
        return FakeProvider(name, **kwargs)

    return _make


@pytest.fixture
def user_messages() -> list[Message]:
    return [Message.user("Hello, who are you?")]
