from __future__ import annotations

from collections.abc import Sequence

import pytest
from fastapi.testclient import TestClient

from gemini_mock.common.config import Settings
from gemini_mock.serve.fastapi_app import create_app


class FixedRandom:
    """Deterministic stand-in for random.Random."""

    def __init__(self, index: int = 0, value: float = 0.0) -> None:
        self.index = index
        self.value = value
        self.choices: list[Sequence[str]] = []

    def choice(self, seq: Sequence[str]) -> str:
        self.choices.append(seq)
        return seq[self.index % len(seq)]

    def random(self) -> float:
        return self.value


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(latency_min_ms=0, latency_max_ms=0, stream_word_delay_ms=0)


@pytest.fixture
def rng() -> FixedRandom:
    return FixedRandom()


@pytest.fixture
def client(settings: Settings, rng: FixedRandom) -> TestClient:
    return TestClient(create_app(settings, rng=rng))


@pytest.fixture
def haiku_payload() -> dict:
    return {"contents": [{"role": "user", "parts": [{"text": "write a haiku"}]}]}
