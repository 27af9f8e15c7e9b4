"""
Time utilities for timestamps and performance measurement.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone


def now() -> float:
    """Get current timestamp in seconds (float)."""
    return time.time()


def ms() -> int:
    """Get current timestamp in milliseconds (int)."""
    return int(time.time() * 1000)


def iso_from_ms(value: int | float) -> str:
    """
    Format epoch milliseconds as a UTC ISO 8601 string with millisecond precision.

    Example: 1700000000000 -> "2023-11-14T22:13:20.000Z"
    """
    dt = datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def now_iso() -> str:
    return iso_from_ms(ms())


def ms_from_iso(value: str | None) -> int | None:
    """Parse an ISO 8601 timestamp into epoch milliseconds; None when unparseable."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


@contextmanager
def timer(label: str, logger: logging.Logger | None = None) -> Iterator[None]:
    """
    Context manager for timing operations.

    Usage:
        with timer("aggregation", logger):
            process_media_data(records)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if logger:
            logger.debug("%s took %.3fs", label, elapsed)
