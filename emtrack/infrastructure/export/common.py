from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: datetime | None, empty: str = "") -> str:
    if value is None:
        return empty
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime(TIMESTAMP_FORMAT)


def format_changes(changes: Iterable[Any]) -> str:
    return "; ".join(f"{c.field}: {c.old_value} → {c.new_value}" for c in changes)


def export_filename(entity: str, scope: str | None, on_date: date | datetime, ext: str) -> str:
    """``<entity>-<scope>-<YYYY-MM-DD>.<ext>``; scope defaults to ``all``."""
    day = on_date.date() if isinstance(on_date, datetime) else on_date
    return f"{entity}-{scope or 'all'}-{day.isoformat()}.{ext.lstrip('.')}"
