from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def current_year() -> int:
    return utcnow().year
