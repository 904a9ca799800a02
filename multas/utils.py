"""Utility functions for MULTAs."""

import os
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Tokyo"

_LOCAL_TIMESTAMP_RE = re.compile(
    r"^\s*(\d{4})[/-](\d{1,2})[/-](\d{1,2})(?:[ T](\d{1,2}):(\d{2})(?::(\d{2}))?)?\s*$"
)


def get_multas_home() -> Path:
    """Directory holding the workbook, backups and logs.

    ``MULTAS_DATA_DIR`` overrides the default ``./data``.
    """
    return Path(os.environ.get("MULTAS_DATA_DIR") or Path.cwd() / "data")


def local_now(tz: str = DEFAULT_TIMEZONE) -> datetime:
    return datetime.now(ZoneInfo(tz))


def format_local_timestamp(moment: datetime) -> str:
    """Format like a ja-JP locale string: ``2024/4/5 9:03:07``."""
    return (
        f"{moment.year}/{moment.month}/{moment.day} "
        f"{moment.hour}:{moment.minute:02d}:{moment.second:02d}"
    )


def local_timestamp(tz: str = DEFAULT_TIMEZONE) -> str:
    """Current time as a locale-formatted string in the given timezone."""
    return format_local_timestamp(local_now(tz))


def parse_local_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a locale-formatted or ISO timestamp. Returns None when unparseable."""
    if not value:
        return None
    match = _LOCAL_TIMESTAMP_RE.match(str(value))
    if match:
        year, month, day, hour, minute, second = match.groups()
        try:
            return datetime(
                int(year),
                int(month),
                int(day),
                int(hour or 0),
                int(minute or 0),
                int(second or 0),
            )
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def generate_id(prefix: str = "post") -> str:
    """Unique record id: ``post_<epoch ms>_<9 hex chars>``."""
    millis = int(datetime.now().timestamp() * 1000)
    return f"{prefix}_{millis}_{uuid.uuid4().hex[:9]}"
