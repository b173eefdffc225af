"""Deterministic ids and timestamp helpers."""

import hashlib
import math
import time
from datetime import datetime, timezone


def stable_id(*parts: str | int | float) -> str:
    """Content hash over an ordered list of parts.

    Parts are converted with ``str()`` and joined by ``|``; the id is the
    first 16 hex chars of the SHA-1 digest. Identical parts always give
    identical ids across runs.
    """
    text = "|".join(str(p) for p in parts)
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]


def now_ms() -> int:
    return int(time.time() * 1000)


def to_timestamp(value: object, default: int | None = None) -> int:
    """Coerce seconds, milliseconds, numeric strings or ISO strings to epoch ms."""
    fallback = now_ms() if default is None else default
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return fallback
        if value > 1_000_000_000_000:
            return int(value)
        if value > 1_000_000_000:
            return int(value * 1000)
        return fallback
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            number = None
        if number is not None and number > 0:
            return to_timestamp(number, fallback)
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return fallback
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    return fallback


def format_ts(ts: int) -> str:
    """Epoch ms to a compact UTC string: '2026-02-23 14:30'."""
    dt = datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M")


def uniq(items):
    """Order-preserving de-duplication, dropping falsy entries."""
    seen = set()
    out = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out
