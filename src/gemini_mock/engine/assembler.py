"""Wrap generated text into the generateContent response shape."""
from __future__ import annotations

from gemini_mock.common.schema import (
    Candidate,
    FinishReason,
    GenerateContentResponse,
    HarmCategory,
    HarmProbability,
    ResponseContent,
    ResponsePart,
    SafetyRating,
    UsageMetadata,
)
from gemini_mock.engine.tokens import estimate_tokens

DEFAULT_MODEL_VERSION = "gemini-1.5-pro-001"


def fixed_safety_ratings() -> list[SafetyRating]:
    """The four ratings attached to every candidate, always NEGLIGIBLE."""
    return [SafetyRating(category=category, probability=HarmProbability.NEGLIGIBLE) for category in HarmCategory]


def assemble_response(
    text: str,
    prompt_tokens: int,
    model: str | None = None,
    default_model_version: str = DEFAULT_MODEL_VERSION,
) -> GenerateContentResponse:
    candidates_tokens = estimate_tokens(text)
    return GenerateContentResponse(
        candidates=[
            Candidate(
                content=ResponseContent(parts=[ResponsePart(text=text)], role="model"),
                finish_reason=FinishReason.STOP,
                index=0,
                safety_ratings=fixed_safety_ratings(),
            )
        ],
        usage_metadata=UsageMetadata(
            prompt_token_count=prompt_tokens,
            candidates_token_count=candidates_tokens,
            total_token_count=prompt_tokens + candidates_tokens,
        ),
        model_version=model or default_model_version,
    )
