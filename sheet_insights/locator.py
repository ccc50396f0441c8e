from __future__ import annotations

import re
from typing import Any

from .errors import InvalidLocatorError, MissingLocatorError

_FILE_ID_PATTERN = re.compile(r"/d/([A-Za-z0-9_-]+)")


def extract_file_id(url: Any) -> str:
    """Return the Drive file id found after ``/d/`` in a sharing URL."""

    if url is None or (isinstance(url, str) and not url.strip()):
        raise MissingLocatorError("Google Drive URL required")
    if not isinstance(url, str):
        raise InvalidLocatorError(f"Google Drive URL must be a string, got {type(url).__name__}")

    match = _FILE_ID_PATTERN.search(url)
    if match is None:
        raise InvalidLocatorError(f"Invalid Google Drive URL: {url!r}")
    return match.group(1)
