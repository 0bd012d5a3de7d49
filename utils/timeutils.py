from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # Naive values are treated as UTC (that is how they are stored)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_db(dt: datetime) -> datetime:
    """Naive UTC, which is what every DateTime column holds."""
    return as_utc(dt).replace(tzinfo=None)


def db_now() -> datetime:
    return to_db(utcnow())


def epoch_ms(dt: datetime) -> int:
    delta = as_utc(dt) - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_ms(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def parse_iso(value: str) -> datetime:
    # Expect ISO format like "2026-01-20T18:00:00Z"
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(value))


def isoformat(dt: datetime) -> str:
    return as_utc(dt).isoformat().replace("+00:00", "Z")
