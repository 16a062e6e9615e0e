from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the ``DateTime`` (without time zone) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
