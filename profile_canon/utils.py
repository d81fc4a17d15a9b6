"""Shared utility functions used across the service."""

from __future__ import annotations

import asyncio
import functools
import logging
import math
import re
from typing import Any

import openai

logger = logging.getLogger(__name__)

_VECTOR_BRACKETS_RE = re.compile(r"[{}\[\]()]")


def retry_openai(
    max_retries: int = 3,
    backoff: float = 1.0,
):
    """Decorator that retries async OpenAI calls on transient errors.

    Retries on RateLimitError and APITimeoutError with exponential backoff.
    """
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            last_exc = None
            for attempt in range(max_retries):
                try:
                    return await fn(*args, **kwargs)
                except (openai.RateLimitError, openai.APITimeoutError) as exc:
                    last_exc = exc
                    wait = backoff * (2 ** attempt)
                    logger.warning(
                        "OpenAI %s on attempt %d/%d for %s, retrying in %.1fs",
                        type(exc).__name__, attempt + 1, max_retries, fn.__name__, wait,
                    )
                    await asyncio.sleep(wait)
            raise last_exc  # type: ignore[misc]
        return wrapper
    return decorator


def parse_vector_string(value: str | None) -> list[float]:
    """Parse a serialized vector such as ``"{0.1,0.2}"`` or ``"[0.1, 0.2]"``.

    Tokens that are not numbers are dropped, so a fully malformed string
    yields an empty list.
    """
    if not value:
        return []
    result: list[float] = []
    for segment in _VECTOR_BRACKETS_RE.sub("", value).split(","):
        number = _to_float(segment.strip())
        if number is not None:
            result.append(number)
    return result


def coerce_embedding(value: Any) -> list[float] | None:
    """Resolve an embedding column value to a plain vector, or None.

    Accepts a float sequence (including arrays loaded by pgvector), a
    serialized vector string, or None. Empty vectors count as missing.
    """
    if value is None:
        return None
    if isinstance(value, str):
        vector = parse_vector_string(value)
    else:
        vector = [n for n in (_to_float(x) for x in value) if n is not None]
    return vector or None


def _to_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number
