"""Aggregate queries over loaded records.

Pure functions used by list/report views; they never touch storage.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from multas.types import MAX_CATEGORY, MIN_CATEGORY, Record
from multas.utils import parse_local_timestamp

_OLDEST = datetime.min


def sort_by_timestamp(records: Sequence[Record], newest_first: bool = True) -> List[Record]:
    """Sort by parsed timestamp. Unparseable timestamps sort as oldest."""
    return sorted(
        records,
        key=lambda r: parse_local_timestamp(r.timestamp) or _OLDEST,
        reverse=newest_first,
    )


def paginate(
    records: Sequence[Record], offset: int = 0, limit: Optional[int] = None
) -> List[Record]:
    start = max(offset, 0)
    if limit is None:
        return list(records[start:])
    return list(records[start : start + max(limit, 0)])


def student_stats(records: Sequence[Record]) -> List[Dict[str, Any]]:
    """Per-user post count with first and last post timestamps.

    Users appear in order of first occurrence in ``records``. Records whose
    timestamp cannot be parsed still count towards ``post_count``.
    """
    stats: Dict[str, Dict[str, Any]] = {}
    parsed: Dict[str, Dict[str, datetime]] = {}

    for record in records:
        entry = stats.setdefault(
            record.user_name,
            {
                "user_name": record.user_name,
                "post_count": 0,
                "first_post_date": None,
                "last_post_date": None,
            },
        )
        entry["post_count"] += 1

        moment = parse_local_timestamp(record.timestamp)
        if moment is None:
            continue
        bounds = parsed.setdefault(record.user_name, {})
        if "last" not in bounds or moment > bounds["last"]:
            bounds["last"] = moment
            entry["last_post_date"] = record.timestamp
        if "first" not in bounds or moment < bounds["first"]:
            bounds["first"] = moment
            entry["first_post_date"] = record.timestamp

    return list(stats.values())


def category_counts(records: Sequence[Record]) -> Dict[int, int]:
    """Record count for every category id, zeros included."""
    counts = {category: 0 for category in range(MIN_CATEGORY, MAX_CATEGORY + 1)}
    for record in records:
        if record.category in counts:
            counts[record.category] += 1
    return counts
