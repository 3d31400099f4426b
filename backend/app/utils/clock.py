from __future__ import annotations

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Returns `value` as an aware UTC datetime.

    SQLite drops tzinfo on DateTime(timezone=True) columns; every timestamp
    this service writes is UTC, so a naive value read back is UTC too.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch_micros(value: datetime | None) -> int:
    """Exact epoch microseconds of `value`, or 0 when it is None."""
    if value is None:
        return 0
    return (as_utc(value) - _EPOCH) // timedelta(microseconds=1)
