"""
Injectable time source.

"Now" is always supplied to the pipeline through a Clock so that window
checks are reproducible. The process-wide clock is only read by the
default implementation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fixed_clock(instant: datetime) -> Clock:
    """Clock that always returns ``instant`` (made UTC-aware if naive)."""
    instant = ensure_aware(instant)
    return lambda: instant


def ensure_aware(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant
