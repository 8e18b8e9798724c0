from __future__ import annotations

from datetime import date, datetime, timezone


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_utc() -> datetime:
    """Current UTC time as a naive datetime (matches MySQL DATETIME columns).

    Note: Wrapped so services can take it as an injectable clock.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: datetime) -> str:
    """Serialize a naive UTC datetime with an explicit Z suffix."""
    return value.isoformat(timespec="seconds") + "Z"


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into a naive UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
