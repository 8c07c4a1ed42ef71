from __future__ import annotations

import pytest

from gemini_mock.common.errors import Unauthenticated
from gemini_mock.serve.gates import RequestCounter, SlidingWindowRateLimiter, check_api_key

from conftest import FakeClock


def test_limiter_window_slides() -> None:
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(2, window=60.0, clock=clock)
    assert limiter.hit("a") == (True, 1)
    clock.now += 30
    assert limiter.hit("a") == (True, 0)
    assert limiter.hit("a") == (False, 0)
    clock.now += 30
    # The first hit has aged out; the second is still in the window.
    assert limiter.hit("a") == (True, 0)


def test_limiter_forgets_idle_clients() -> None:
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(5, window=60.0, clock=clock)
    for n in range(100):
        limiter.hit(f"10.0.0.{n}")
    assert limiter.tracked_clients == 100
    clock.now += 61
    limiter.hit("10.0.1.1")
    assert limiter.tracked_clients == 1


def test_limiter_keeps_clients_separate() -> None:
    limiter = SlidingWindowRateLimiter(1, clock=FakeClock())
    assert limiter.hit("a")[0]
    assert limiter.hit("b")[0]
    assert not limiter.hit("a")[0]


def test_request_counter() -> None:
    counter = RequestCounter()
    assert counter.value == 0
    assert counter.increment() == 1
    assert counter.increment() == 2
    assert counter.value == 2


def test_check_api_key() -> None:
    assert check_api_key("abc", "bad") == "abc"
    with pytest.raises(Unauthenticated, match="required"):
        check_api_key(None, "bad")
    with pytest.raises(Unauthenticated, match="Invalid API key provided"):
        check_api_key("bad", "bad")
