"""
Parsing of model responses that are expected to contain a JSON object.

Language models frequently wrap JSON in markdown code fences. Two policies
are offered:

- ``parse_json_with_fallback``: parse the raw text, and only if that fails
  strip code fences and parse once more (used by the describer).
- ``parse_sanitized_json``: strip code fences first and parse exactly once
  (used by the group suggester).
"""

import json
import re
from typing import Any

from tab_organizer.config import get_logger

logger = get_logger(__name__)

# Opening fences may carry a "json" language hint
_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


class ResponseParseError(ValueError):
    """Raised when a model response does not contain a JSON object."""

    def __init__(self, message: str, response: str):
        super().__init__(message)
        self.response = response


def strip_code_fences(text: str) -> str:
    """
    Remove markdown code-fence markers and surrounding whitespace.

    Examples:
        '```json\\n{"a": 1}\\n```' → '{"a": 1}'
        '  {"a": 1}  ' → '{"a": 1}'
    """
    return _FENCE_PATTERN.sub("", text).strip()


def _load_object(text: str, original: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Response is not valid JSON: {e}", original) from e

    if not isinstance(data, dict):
        raise ResponseParseError(
            f"Expected a JSON object, got {type(data).__name__}", original
        )
    return data


def parse_json_with_fallback(response: str) -> dict[str, Any]:
    """
    Parse a JSON object, retrying once on the fence-stripped text.

    Args:
        response: Raw model output

    Returns:
        The decoded JSON object

    Raises:
        ResponseParseError: If neither the raw nor the sanitized text parses
    """
    try:
        return _load_object(response, response)
    except ResponseParseError:
        logger.warning("JSON parsing failed, retrying on sanitized response")

    return _load_object(strip_code_fences(response), response)


def parse_sanitized_json(response: str) -> dict[str, Any]:
    """
    Strip code fences, then parse a JSON object exactly once.

    Args:
        response: Raw model output

    Returns:
        The decoded JSON object

    Raises:
        ResponseParseError: If the sanitized text does not parse
    """
    return _load_object(strip_code_fences(response), response)
