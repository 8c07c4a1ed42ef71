"""Inbound payload validation."""
from __future__ import annotations
import logging
from typing import Any

from pydantic import ValidationError

from gemini_mock.common.errors import InvalidArgument
from gemini_mock.common.schema import GenerateContentRequest

LOGGER = logging.getLogger("gemini_mock.engine.validation")

CONTENTS_REQUIRED = "contents field is required and must be an array"


def validate_request(payload: Any) -> GenerateContentRequest:
    """
    Check that ``contents`` is a non-empty list of turns and parse the payload.

    Args:
        payload: Decoded JSON body.

    Raises:
        InvalidArgument: ``contents`` is missing, not a list, empty, or
            holds turns/parts of the wrong shape.
    """
    if not isinstance(payload, dict):
        raise InvalidArgument("Request body must be a JSON object")
    contents = payload.get("contents")
    if not isinstance(contents, list) or not contents:
        raise InvalidArgument(CONTENTS_REQUIRED)
    try:
        return GenerateContentRequest.from_payload(payload)
    except ValidationError as e:
        LOGGER.debug("Rejected payload: %s", e)
        first = e.errors()[0]
        where = ".".join(str(loc) for loc in first["loc"])
        raise InvalidArgument(f"Invalid value at '{where}': {first['msg']}") from e
