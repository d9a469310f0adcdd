from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime

# Every timestamp column stores UTC. SQLite keeps no offset and hands values
# back naive; `as_utc` puts UTC back on them before any comparison.
UtcDateTime = DateTime(timezone=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
