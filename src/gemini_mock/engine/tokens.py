"""Token count estimation.

This is a character-length proxy, not a tokenizer: one token is assumed per
1.3 characters. Swap ``estimate_tokens`` for a real tokenizer without
touching call sites.
"""
from __future__ import annotations
import json
import math
from collections.abc import Sequence
from typing import Any

CHARS_PER_TOKEN = 1.3


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def serialize_contents(contents: Sequence[Any]) -> str:
    """Compact JSON of the turns as sent, used as the prompt estimate input."""
    return json.dumps(list(contents), separators=(",", ":"), ensure_ascii=False)
