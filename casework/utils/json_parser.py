import json
from typing import Any, Dict, List, Union, Optional

from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


def parse_json_safely(text: Optional[str]) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Leading/trailing whitespace
    - Prose before or after the JSON payload

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON object or None if parsing fails
    """
    if not text:
        return None

    cleaned_text = text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text[7:]
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text[3:]

    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text[:-3]

    cleaned_text = cleaned_text.strip()

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.debug(f"Initial JSON parse failed: {e}, scanning for an embedded payload")

    # Decode the first complete object or array found in the text
    decoder = json.JSONDecoder()
    for idx, char in enumerate(cleaned_text):
        if char not in "{[":
            continue
        try:
            obj, _ = decoder.raw_decode(cleaned_text, idx)
            return obj
        except json.JSONDecodeError:
            continue

    LOGGER.warning("Failed to parse JSON from response", extra={"preview": cleaned_text[:200]})
    return None
