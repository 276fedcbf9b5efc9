from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Optional

from .config import LLM_DEBUG


def _log_debug(message: str) -> None:
    if LLM_DEBUG:
        print(message, flush=True)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 instant. Naive values are read as UTC.

    Raises ValueError for anything that is not a usable ISO string.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("expected an ISO-8601 date-time string")
        candidate = value.strip()
        if candidate.endswith(("Z", "z")):
            candidate = candidate[:-1] + "+00:00"
        parsed = datetime.fromisoformat(candidate)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as exc:
        # offsets near year 1 / 9999 leave the datetime range
        raise ValueError("date value out of range") from exc


def try_parse_instant(value: Any) -> Optional[datetime]:
    try:
        return parse_instant(value)
    except (TypeError, ValueError):
        return None


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    text = value.astimezone(timezone.utc).isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def start_of_day(now: datetime, tz: tzinfo) -> datetime:
    local = now.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def day_window(now: datetime, tz: tzinfo, days: int) -> tuple[datetime, datetime]:
    today = start_of_day(now, tz)
    return today, today + timedelta(days=days)
