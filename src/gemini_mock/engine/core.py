"""Mock response engine: latency, generation, assembly and streaming."""
from __future__ import annotations
import asyncio
import logging
import random
from collections.abc import AsyncIterator, Awaitable, Callable

from gemini_mock.common.config import Settings
from gemini_mock.common.errors import InternalError
from gemini_mock.common.schema import GenerateContentRequest, GenerateContentResponse
from gemini_mock.engine.assembler import assemble_response
from gemini_mock.engine.responses import RandomSource, ResponseGenerator, apply_token_limit
from gemini_mock.engine.streaming import WordStream
from gemini_mock.engine.tokens import estimate_tokens, serialize_contents

LOGGER = logging.getLogger("gemini_mock.engine.core")


class MockResponseEngine:
    """Build canned generateContent responses for validated requests."""

    def __init__(
        self,
        settings: Settings | None = None,
        rng: RandomSource | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or Settings()
        self.rng = rng if rng is not None else random.Random()
        self.generator = ResponseGenerator(self.rng)
        self._sleep = sleep

    def latency_seconds(self) -> float:
        low = self.settings.latency_min_ms
        high = max(self.settings.latency_max_ms, low)
        return (low + self.rng.random() * (high - low)) / 1000.0

    async def simulate_latency(self) -> float:
        """Wait once per request to emulate network and inference time."""
        delay = self.latency_seconds()
        if delay > 0:
            await self._sleep(delay)
        return delay

    def build_response(self, request: GenerateContentRequest, model: str | None = None) -> GenerateContentResponse:
        try:
            text = self.generator.generate(request.latest_text, request.has_media)
            text = apply_token_limit(text, request.max_output_tokens)
            prompt_tokens = estimate_tokens(serialize_contents(request.raw_contents))
            return assemble_response(
                text,
                prompt_tokens,
                model=model,
                default_model_version=self.settings.default_model_version,
            )
        except Exception as e:
            LOGGER.exception("Response generation failed: %s", e)
            raise InternalError("Internal server error") from e

    def stream(self, response: GenerateContentResponse) -> AsyncIterator[str]:
        stream = WordStream(response, word_delay=self.settings.stream_word_delay_ms / 1000.0)
        return stream.chunks()
