from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .errors import MalformedInsightError
from .prompt_builder import InsightTemplate

LOGGER = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(raw: str) -> str:
    """Remove markdown code fence markers and surrounding whitespace."""

    return _FENCE_PATTERN.sub("", raw.strip()).strip()


def normalize_insight(
    raw: Optional[str],
    template: Optional[InsightTemplate] = None,
) -> Dict[str, Any]:
    """Parse completion text as a JSON object, optionally checking the template's shape."""

    text = strip_code_fences(raw or "")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        LOGGER.error("JSON parse error: %s; raw completion: %s", exc, raw)
        raise MalformedInsightError(f"Completion is not valid JSON: {exc}", raw or "") from exc

    if not isinstance(payload, dict):
        LOGGER.error("Completion JSON is not an object; raw completion: %s", raw)
        raise MalformedInsightError(
            f"Completion JSON is a {type(payload).__name__}, expected an object", raw or ""
        )

    if template is not None:
        try:
            template.response_model.model_validate(payload)
        except ValidationError as exc:
            LOGGER.error(
                "Completion JSON does not match the %s shape: %s; raw completion: %s",
                template.kind.value,
                exc,
                raw,
            )
            raise MalformedInsightError(
                f"Completion JSON does not match the {template.kind.value} shape", raw or ""
            ) from exc

    return payload
