"""Shared pydantic field types."""

from datetime import datetime, timezone
from typing import Annotated
from pydantic import AfterValidator


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are left alone."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# Use for every inbound datetime: stored columns only accept aware values
UTCDatetime = Annotated[datetime, AfterValidator(as_utc)]
