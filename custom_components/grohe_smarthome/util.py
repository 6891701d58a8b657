"""Logging helpers for the Grohe Smarthome integration."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import urlsplit

from .const import LOG_CLIP_LENGTH


def clip(value: Any, limit: int = LOG_CLIP_LENGTH) -> str:
    """Return value as a string truncated to limit characters.

    Non-string values are JSON encoded first. Used for every request or
    response body that ends up in a log line or an error message.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value)
        except (TypeError, ValueError):
            text = str(value)
    if len(text) > limit:
        return f"{text[:limit]}…"
    return text


def safe_host_path(url: str | None) -> str:
    """Return host and path of a URL, dropping the query string."""
    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.netloc:
        return url[:80]
    return f"{parts.netloc}{parts.path}"
