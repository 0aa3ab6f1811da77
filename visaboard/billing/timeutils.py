from datetime import datetime, timedelta, timezone
from typing import Optional

def now_utc():
    return datetime.now(timezone.utc)

def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive values for timezone-aware columns
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)
