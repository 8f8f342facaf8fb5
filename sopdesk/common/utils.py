"""Common utilities for the SOP engine.

Text handling contract
----------------------
Pages and user queries cross the boundary as arbitrary Unicode. BOM markers
and replacement characters are stripped once, at the boundary, and text is
NFKC-normalized so indexing and matching are deterministic. Internal layers
assume text is already clean.

Time handling contract
----------------------
Every timestamp inside the engine is timezone-aware UTC. Services take a
``clock`` callable so age-based scoring can be tested deterministically.
"""

import calendar
import unicodedata
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def months_before(moment: datetime, months: int) -> datetime:
    """Shift a datetime back by calendar months, clamping the day.

    March 31 minus one month is February 28 (or 29), not an error.
    """
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def age_in_days(last_modified: datetime, now: datetime) -> float:
    """Fractional days elapsed since ``last_modified``."""
    return (now - last_modified).total_seconds() / 86400


def clean_text(text: str, *, normalize: bool = True, ascii_only: bool = False) -> str:
    """Remove BOM markers and optionally normalize/ASCII-fold text.

    Args:
        text: Input text that may contain BOM or special characters.
        normalize: Whether to apply NFKC normalization for consistent
            downstream processing. Enabled by default.
        ascii_only: Whether to discard non-ASCII characters (useful for
            transport or logging contexts that cannot handle Unicode).

    Returns:
        Cleaned text with BOMs removed and optional normalization applied.
    """
    if not text:
        return ""

    cleaned = text.replace("\ufeff", "").replace("\ufffd", "")
    if normalize:
        cleaned = unicodedata.normalize("NFKC", cleaned)
    if ascii_only:
        cleaned = cleaned.encode("ascii", errors="ignore").decode("ascii")
    return cleaned
