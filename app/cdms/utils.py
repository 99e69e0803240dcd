from __future__ import annotations

from datetime import date, datetime


def parse_iso_date(value: str | date | datetime | None) -> date | None:
    """Parse YYYY-MM-DD (or a full ISO timestamp) into a date. Raises ValueError when malformed."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = str(value).strip()
    if not value:
        return None
    if len(value) > 10:
        # ISO timestamps from form helpers, e.g. 2026-01-15T09:00:00Z
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return date.fromisoformat(value)


def split_list(value: str | list | tuple | None) -> list[str]:
    """Comma-separated string or list -> trimmed, non-empty, de-duplicated list (order kept)."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    out: list[str] = []
    for item in items:
        item = item.strip()
        if item and item not in out:
            out.append(item)
    return out


def str_field(payload: dict, key: str, errors: list[str]) -> str:
    """Trimmed string at payload[key] ('' when absent). A non-string value is reported in errors."""
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        errors.append(f"{key} must be a string.")
        return ""
    return value.strip()
