"""Shared fixtures."""

from __future__ import annotations

import pytest

SECRET = "s" * 32
OTHER_SECRET = "o" * 32


class FakeClock:
    """Settable time source for codecs and state signers."""

    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def secret() -> str:
    return SECRET
