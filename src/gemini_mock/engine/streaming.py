"""Simulated streaming: one growing response snapshot per word.

Every word gets its own timer armed at stream start (word ``i`` fires at
``start + i * word_delay``), so delays are relative to the start rather than
chained. Each chunk is a complete response whose text is the prefix emitted
so far, serialized as one JSON document followed by a newline.
"""
from __future__ import annotations
import asyncio
import json
import logging
from collections.abc import AsyncIterator
from enum import Enum

from gemini_mock.common.schema import GenerateContentResponse

LOGGER = logging.getLogger("gemini_mock.engine.streaming")


class StreamState(str, Enum):
    IDLE = "idle"
    EMITTING = "emitting"
    DONE = "done"


def split_words(text: str) -> list[str]:
    """Split on single spaces; empty text has no words."""
    if not text:
        return []
    return text.split(" ")


def render_snapshot(response: GenerateContentResponse, text: str) -> str:
    data = response.to_wire()
    data["candidates"][0]["content"]["parts"] = [{"text": text}]
    return json.dumps(data, ensure_ascii=False) + "\n"


class WordStream:
    """Per-request streaming state machine (IDLE -> EMITTING -> DONE)."""

    def __init__(self, response: GenerateContentResponse, word_delay: float = 0.1) -> None:
        self.response = response
        self.word_delay = word_delay
        self.words = split_words(response.text)
        self.state = StreamState.IDLE
        self.emitted = 0
        self._handles: list[asyncio.TimerHandle] = []

    def _emit(self, queue: asyncio.Queue[str]) -> None:
        # Text follows emission order, so tied timers still produce growing prefixes.
        self.state = StreamState.EMITTING
        self.emitted += 1
        text = " ".join(self.words[: self.emitted]).strip()
        queue.put_nowait(render_snapshot(self.response, text))

    def _cancel_pending(self) -> int:
        pending = sum(1 for handle in self._handles if not handle.cancelled())
        for handle in self._handles:
            handle.cancel()
        self._handles = []
        return pending

    async def chunks(self) -> AsyncIterator[str]:
        total = len(self.words)
        if total == 0:
            self.state = StreamState.DONE
            return

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[str] = asyncio.Queue()
        start = loop.time()
        self._handles = [loop.call_at(start + index * self.word_delay, self._emit, queue) for index in range(total)]
        delivered = 0
        try:
            while delivered < total:
                chunk = await queue.get()
                delivered += 1
                yield chunk
        finally:
            if delivered < total:
                LOGGER.info("Stream closed early after %s/%s words", delivered, total)
            self._cancel_pending()
            self.state = StreamState.DONE
