"""Record <-> row translation.

Both the local workbook and the remote spreadsheet hold records as seven
positional columns. This module is the only place that knows the column
order; everything else works with Record objects.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from multas.types import (
    DEFAULT_USER_NAME,
    IMMUTABLE_FIELDS,
    MAX_CATEGORY,
    MIN_CATEGORY,
    UPDATABLE_FIELDS,
    Record,
)
from multas.utils import generate_id

COLUMNS = ("id", "timestamp", "user_name", "text", "category", "reason", "date")

HEADERS = ("ID", "タイムスタンプ", "ユーザー名", "投稿内容", "カテゴリ", "分類理由", "日付")

# 1-based column numbers, as spreadsheets count them
COLUMN_NUMBERS = {name: index + 1 for index, name in enumerate(COLUMNS)}

# A1 column letter of the last column (G)
LAST_COLUMN_LETTER = chr(ord("A") + len(COLUMNS) - 1)

# Accepted aliases for incoming dicts (the web layer posts camelCase)
_FIELD_ALIASES = {"userName": "user_name"}


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_category(value: Any, default: int = 0) -> int:
    """Parse a category cell. Unparseable or out-of-range values become ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        category = int(str(value).strip())
    except (TypeError, ValueError):
        try:
            category = int(float(str(value).strip()))
        except (TypeError, ValueError):
            return default
    if MIN_CATEGORY <= category <= MAX_CATEGORY:
        return category
    return default


def normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {_FIELD_ALIASES.get(key, key): value for key, value in data.items()}


def record_to_row(record: Record) -> List[Any]:
    """Record as seven positional cell values."""
    return [
        record.id,
        record.timestamp,
        record.user_name,
        record.text,
        record.category,
        record.reason,
        record.date or record.timestamp,
    ]


def row_id(row: Sequence[Any], index: int, id_prefix: str = "row") -> str:
    """Id a row answers to: its id cell, or the id invented for a blank one."""
    value = _cell_text(row[0]) if row else ""
    return value or f"{id_prefix}_{index}"


def row_to_record(row: Sequence[Any], index: int, id_prefix: str = "row") -> Optional[Record]:
    """Convert a row back into a Record.

    Args:
        row: Cell values in column order; short rows are padded.
        index: Row number, used to invent an id when the id cell is blank.
        id_prefix: Prefix for invented ids.

    Returns:
        The Record, or None when the text cell is blank.
    """
    cells = list(row) + [None] * (len(COLUMNS) - len(row))
    text = _cell_text(cells[3])
    if not text.strip():
        return None

    timestamp = _cell_text(cells[1])
    return Record(
        id=row_id(cells, index, id_prefix),
        timestamp=timestamp,
        user_name=_cell_text(cells[2]),
        text=text,
        category=coerce_category(cells[4]),
        reason=_cell_text(cells[5]),
        date=_cell_text(cells[6]) or timestamp,
    )


def build_record(
    data: Record | Mapping[str, Any],
    timestamp: str,
    default_user: str = DEFAULT_USER_NAME,
) -> Record:
    """Fill defaults for a new record.

    Missing id gets a generated one, a blank user name becomes the guest
    label, a missing timestamp uses ``timestamp`` and a missing date falls
    back to the record's timestamp.

    Raises:
        ValueError: If text is blank or the category is outside [0, 12].
    """
    if isinstance(data, Record):
        data = data.to_dict()
    values = normalize_keys(data)

    text = str(values.get("text") or "")
    if not text.strip():
        raise ValueError("Record text must not be empty")

    raw_category = values.get("category")
    category = 0 if raw_category in (None, "") else coerce_category(raw_category, default=-1)
    if category < 0:
        raise ValueError(f"Category must be an integer between 0 and 12, got {raw_category!r}")

    stamp = str(values.get("timestamp") or timestamp)
    user_name = str(values.get("user_name") or "").strip() or default_user
    return Record(
        id=str(values.get("id") or generate_id("post")),
        timestamp=stamp,
        user_name=user_name,
        text=text,
        category=category,
        reason=str(values.get("reason") or ""),
        date=str(values.get("date") or stamp),
    )


def validate_update_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Check a partial update and drop ``None`` values.

    Raises:
        ValueError: On immutable or unknown fields, blank text, or an
            out-of-range category.
    """
    cleaned: Dict[str, Any] = {}
    for key, value in normalize_keys(fields).items():
        if key in IMMUTABLE_FIELDS:
            raise ValueError(f"Field '{key}' cannot be updated")
        if key not in UPDATABLE_FIELDS:
            raise ValueError(f"Unknown record field '{key}'")
        if value is None:
            continue
        if key == "category":
            category = coerce_category(value, default=-1)
            if category < 0:
                raise ValueError(f"Category must be an integer between 0 and 12, got {value!r}")
            value = category
        else:
            value = str(value)
            if key == "text" and not value.strip():
                raise ValueError("Record text must not be empty")
        cleaned[key] = value
    return cleaned


def merge_row(row: Sequence[Any], fields: Mapping[str, Any]) -> List[Any]:
    """Overlay validated fields onto an existing positional row."""
    merged = list(row) + [""] * (len(COLUMNS) - len(row))
    merged = merged[: len(COLUMNS)]
    for key, value in fields.items():
        merged[COLUMN_NUMBERS[key] - 1] = value
    return merged
