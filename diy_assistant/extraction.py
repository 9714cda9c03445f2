"""Tolerant extraction of a materials/tools payload embedded in assistant prose.

The scan is a pattern match, not a JSON-aware parser: it takes the leftmost
opening brace that is followed by both quoted collection names and runs to the
last closing brace in the text. Only that first span is tried. A stray brace in
surrounding prose makes the span unparseable and the message yields nothing,
which callers resolve through the fallback catalog.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from .models import Recommendations

logger = logging.getLogger("diyassist.extraction")

_PAYLOAD_RE = re.compile(
    r'\{.*(?:"materials".*"tools"|"tools".*"materials").*\}',
    re.DOTALL,
)

GENERATING_PHRASES = (
    "generating your personalized project list",
    "i'm generating your",
    "creating your project list",
)

PAYLOAD_NOTICE = (
    "I've prepared your recommendations based on your project details. "
    "You can view them in the recommendations panel."
)


def find_payload_span(text: str) -> Optional[str]:
    """Purpose: Locate the first brace-delimited span naming both collections.
    Inputs/Outputs: Input is free-form text; output is the matched substring or None.
    Side Effects / State: None; pure function.
    Dependencies: Uses the module-level _PAYLOAD_RE pattern.
    Failure Modes: Returns None if either token or the braces are missing.
    Testing Notes: Prose before and after the payload must not prevent a match.
    """
    if not text:
        return None
    match = _PAYLOAD_RE.search(text)
    if not match:
        return None
    return match.group(0)


def extract_recommendations(text: str) -> Optional[Recommendations]:
    """Purpose: Parse and validate an embedded recommendations payload.
    Inputs/Outputs: Input is assistant text; output is Recommendations or None when
        no valid payload is present.
    Side Effects / State: Emits a debug log line on parse/validation failure.
    Dependencies: Uses find_payload_span, json.loads, and the Recommendations model.
    Failure Modes: Malformed JSON, missing keys, non-list collections, or items without
        a non-empty string name all return None. Partial results are never returned.
    Testing Notes: Embed a serialized payload in prose and compare the result.
    """
    span = find_payload_span(text)
    if span is None:
        return None
    try:
        data = json.loads(span)
    except json.JSONDecodeError as exc:
        logger.debug("extraction status=invalid_json error=%s", exc)
        return None
    if not isinstance(data, dict):
        return None
    if not isinstance(data.get("materials"), list) or not isinstance(data.get("tools"), list):
        logger.debug("extraction status=invalid_shape keys=%s", sorted(data.keys()))
        return None
    try:
        return Recommendations.model_validate(data)
    except ValidationError as exc:
        logger.debug("extraction status=invalid_items errors=%d", exc.error_count())
        return None


def strip_payload(text: str) -> str:
    """Remove an embedded payload from a reply so only the prose is displayed."""
    span = find_payload_span(text)
    if span is None:
        return text
    cleaned = text.replace(span, "").strip()
    # Drop an empty markdown fence left behind by ```json ... ``` wrappers.
    cleaned = re.sub(r"```(?:json)?\s*```", "", cleaned).strip()
    return cleaned or PAYLOAD_NOTICE


def is_generating_recommendations(text: str) -> bool:
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in GENERATING_PHRASES)
