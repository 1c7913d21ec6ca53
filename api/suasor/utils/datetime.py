"""Datetime parsing helpers for client payloads."""

from __future__ import annotations

from datetime import date, datetime, timezone


def parse_date(value: str | None) -> date | None:
    """Parse YYYY, YYYY-MM, YYYY-MM-DD or ISO timestamp strings into dates."""
    if not value:
        return None
    value = value.strip()
    try:
        if len(value) == 4:
            return date.fromisoformat(f"{value}-01-01")
        if len(value) == 7:
            return date.fromisoformat(f"{value}-01")
        if len(value) > 10:
            parsed = parse_datetime(value)
            return parsed.date() if parsed else None
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_datetime(value: str | None) -> datetime | None:
    """Parse vendor ISO timestamps, tolerating a trailing ``Z`` and 7-digit fractions."""
    if not value:
        return None
    cleaned = value.strip().replace("Z", "+00:00")
    if "." in cleaned:
        head, _, tail = cleaned.partition(".")
        digits = "".join(ch for ch in tail if ch.isdigit())
        suffix = tail[len(digits):]
        cleaned = f"{head}.{digits[:6]}{suffix}"
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def from_timestamp(value: int | float | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)
