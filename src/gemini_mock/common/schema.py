"""Pydantic models for generateContent requests and responses.

Field names are snake_case in Python and camelCase on the wire; both
spellings are accepted on input.
"""
from __future__ import annotations
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _InboundModel(_WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# Request side

class InlineData(_InboundModel):
    mime_type: str | None = None
    data: str | None = None


class FileData(_InboundModel):
    mime_type: str | None = None
    file_uri: str | None = None


class Part(_InboundModel):
    text: str | None = None
    inline_data: InlineData | None = None
    file_data: FileData | None = None

    @property
    def has_media(self) -> bool:
        return self.inline_data is not None or self.file_data is not None


class Content(_InboundModel):
    """One conversation turn."""

    role: str | None = None
    parts: list[Part] = Field(default_factory=list)


class GenerationConfig(_InboundModel):
    temperature: float | None = None
    top_k: int | None = None
    top_p: float | None = None
    max_output_tokens: int | None = None
    candidate_count: int | None = None
    stop_sequences: list[str] | None = None


class GenerateContentRequest(_InboundModel):
    contents: list[Content] = Field(min_length=1)
    generation_config: GenerationConfig | None = None
    # Accepted for compatibility, never consulted.
    safety_settings: list[dict[str, Any]] | None = None
    _raw_contents: list[Any] | None = PrivateAttr(default=None)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "GenerateContentRequest":
        """Parse ``payload`` and keep its ``contents`` exactly as sent."""
        request = cls.model_validate(payload)
        request._raw_contents = payload["contents"]
        return request

    @property
    def raw_contents(self) -> list[Any]:
        if self._raw_contents is not None:
            return self._raw_contents
        return [turn.model_dump(mode="json", by_alias=True, exclude_unset=True) for turn in self.contents]

    @property
    def latest_text(self) -> str:
        """Text of the first part of the last turn, or an empty string."""
        parts = self.contents[-1].parts
        if not parts:
            return ""
        return parts[0].text or ""

    @property
    def has_media(self) -> bool:
        return any(part.has_media for turn in self.contents for part in turn.parts)

    @property
    def max_output_tokens(self) -> int | None:
        if self.generation_config is None:
            return None
        return self.generation_config.max_output_tokens


# Response side

class FinishReason(str, Enum):
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"
    OTHER = "OTHER"


class HarmCategory(str, Enum):
    HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"


class HarmProbability(str, Enum):
    NEGLIGIBLE = "NEGLIGIBLE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SafetyRating(_WireModel):
    category: HarmCategory
    probability: HarmProbability


class ResponsePart(_WireModel):
    text: str


class ResponseContent(_WireModel):
    parts: list[ResponsePart]
    role: str = "model"


class Candidate(_WireModel):
    content: ResponseContent
    finish_reason: FinishReason = FinishReason.STOP
    index: int = 0
    safety_ratings: list[SafetyRating] = Field(default_factory=list)


class UsageMetadata(_WireModel):
    prompt_token_count: int
    candidates_token_count: int
    total_token_count: int


class GenerateContentResponse(_WireModel):
    candidates: list[Candidate]
    usage_metadata: UsageMetadata
    model_version: str

    @property
    def text(self) -> str:
        return self.candidates[0].content.parts[0].text

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
