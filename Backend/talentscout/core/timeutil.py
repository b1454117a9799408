from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now; every timestamp in the pipeline is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
