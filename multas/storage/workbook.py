"""Local workbook storage for MULTAs.

The primary store: one ``.xlsx`` file with a ``Posts`` worksheet whose first
row holds the column headers. Every mutation takes a backup first and
writes the file through a temp file + rename so a crash mid-save never
leaves a truncated workbook behind.
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from openpyxl import Workbook, load_workbook

from multas.protocols import StorageError
from multas.types import Record
from multas.utils import DEFAULT_TIMEZONE, local_timestamp

from .backups import cleanup_old_backups, create_backup
from .codec import (
    COLUMNS,
    HEADERS,
    build_record,
    merge_row,
    record_to_row,
    row_id,
    row_to_record,
    validate_update_fields,
)

logger = logging.getLogger(__name__)

SHEET_NAME = "Posts"

# Prefix of ids invented for rows whose id cell is blank
ID_PREFIX = "local"


class WorkbookStorage:
    """Record store backed by a local spreadsheet file."""

    def __init__(
        self,
        file_path: Union[str, Path],
        backup_dir: Optional[Union[str, Path]] = None,
        *,
        max_age_days: int = 30,
        min_keep: int = 3,
        min_backup_interval: float = 0.0,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.file_path = Path(file_path)
        self.backup_dir = Path(backup_dir) if backup_dir else self.file_path.parent / "backups"
        self.max_age_days = max_age_days
        self.min_keep = min_keep
        self.min_backup_interval = min_backup_interval
        self.timezone = timezone

        self._lock = threading.RLock()
        self._last_backup_at: Optional[float] = None

        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        try:
            self.cleanup_old_backups()
        except Exception as e:
            logger.warning(f"Backup cleanup at startup failed: {e}")

    # === File handling ===

    def ensure_initialized(self) -> None:
        """Create the workbook with a header row if it does not exist."""
        with self._lock:
            if self.file_path.exists():
                return
            wb = Workbook()
            ws = wb.active
            ws.title = SHEET_NAME
            ws.append(list(HEADERS))
            self._save(wb)
            logger.info(f"Created workbook: {self.file_path}")

    def _open(self):
        try:
            return load_workbook(self.file_path)
        except Exception as e:
            raise StorageError(f"Failed to read workbook {self.file_path}: {e}") from e

    @staticmethod
    def _sheet(wb):
        if SHEET_NAME in wb.sheetnames:
            return wb[SHEET_NAME]
        return wb.worksheets[0]

    def _save(self, wb) -> None:
        tmp_path = self.file_path.with_name(
            f".{self.file_path.stem}.{os.getpid()}.tmp{self.file_path.suffix}"
        )
        try:
            wb.save(tmp_path)
            os.replace(tmp_path, self.file_path)
        except Exception as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise StorageError(f"Failed to write workbook {self.file_path}: {e}") from e

    @staticmethod
    def _data_rows(ws):
        """Yield ``(row_number, values)`` for every row below the header."""
        for row_number, values in enumerate(
            ws.iter_rows(min_row=2, max_col=len(COLUMNS), values_only=True), start=2
        ):
            yield row_number, list(values)

    def _find_rows(self, ws, record_id: str) -> List[int]:
        """Row numbers answering to ``record_id``, in file order.

        Rows with a blank id cell answer to the ``local_<row>`` id that
        ``load_all`` reports for them.
        """
        return [
            row_number
            for row_number, values in self._data_rows(ws)
            if any(v is not None for v in values)
            and row_id(values, row_number, ID_PREFIX) == record_id
        ]

    def _find_row(self, ws, record_id: str) -> Optional[int]:
        rows = self._find_rows(ws, record_id)
        return rows[0] if rows else None

    # === Backups ===

    def create_backup(self, force: bool = False) -> Optional[Path]:
        """Copy the workbook into the backup directory.

        Non-forced backups are skipped while ``min_backup_interval`` seconds
        have not passed since the previous one.

        Raises:
            StorageError: If the copy fails.
        """
        if not self.file_path.exists():
            return None

        now = time.time()
        if (
            not force
            and self.min_backup_interval > 0
            and self._last_backup_at is not None
            and now - self._last_backup_at < self.min_backup_interval
        ):
            return None

        try:
            path = create_backup(self.file_path, self.backup_dir)
        except OSError as e:
            raise StorageError(f"Backup failed, aborting write: {e}") from e

        self._last_backup_at = now
        try:
            self.cleanup_old_backups()
        except Exception as e:
            logger.warning(f"Backup cleanup failed: {e}")
        return path

    def cleanup_old_backups(self) -> int:
        return cleanup_old_backups(self.backup_dir, self.max_age_days, self.min_keep)

    # === Reads ===

    def load_all(self) -> List[Record]:
        """All records in file order. A missing file reads as empty."""
        with self._lock:
            if not self.file_path.exists():
                return []
            wb = self._open()
            try:
                ws = self._sheet(wb)
                records = []
                for row_number, values in self._data_rows(ws):
                    record = row_to_record(values, row_number, id_prefix=ID_PREFIX)
                    if record is not None:
                        records.append(record)
                return records
            finally:
                wb.close()

    def load_by_user(self, user_name: str) -> List[Record]:
        return [r for r in self.load_all() if r.user_name == user_name]

    def get_stats(self) -> Dict[str, Any]:
        records = self.load_all()
        return {
            "total_posts": len(records),
            "total_users": len({r.user_name for r in records}),
            "file_path": str(self.file_path),
            "file_exists": self.file_path.exists(),
        }

    # === Mutations ===

    def add_record(self, record: Union[Record, Mapping[str, Any]]) -> int:
        """Append a record and return its 1-based row number.

        Raises:
            ValueError: If the record is invalid or its id already exists.
            StorageError: If the backup or the write fails.
        """
        record = build_record(record, local_timestamp(self.timezone))
        with self._lock:
            self.ensure_initialized()
            self.create_backup()

            wb = self._open()
            try:
                ws = self._sheet(wb)
                if self._find_row(ws, record.id) is not None:
                    raise ValueError(f"Record id already exists: {record.id}")
                ws.append(record_to_row(record))
                row_number = ws.max_row
                self._save(wb)
            finally:
                wb.close()

        logger.debug(f"Record {record.id} written to row {row_number}")
        return row_number

    def update_post(self, record_id: str, fields: Mapping[str, Any]) -> bool:
        """Apply a partial update. Returns False when the id is not found.

        Raises:
            ValueError: If ``fields`` touches id/timestamp or an unknown field.
            StorageError: If the backup or the write fails.
        """
        changes = validate_update_fields(fields)
        with self._lock:
            if not self.file_path.exists():
                return False

            wb = self._open()
            try:
                ws = self._sheet(wb)
                row_number = self._find_row(ws, record_id)
                if row_number is None:
                    logger.warning(f"Update skipped, record not found: {record_id}")
                    return False
                if not changes:
                    return True

                self.create_backup()
                current = [cell.value for cell in ws[row_number][: len(COLUMNS)]]
                for col, value in enumerate(merge_row(current, changes), start=1):
                    ws.cell(row=row_number, column=col, value=value)
                self._save(wb)
            finally:
                wb.close()

        logger.info(f"Record updated: {record_id}")
        return True

    def delete_post(self, record_id: str) -> bool:
        """Remove every row carrying ``record_id``. Always takes a fresh backup first.

        Returns:
            False when the id is not found.
        """
        with self._lock:
            if not self.file_path.exists():
                return False

            wb = self._open()
            try:
                ws = self._sheet(wb)
                rows = self._find_rows(ws, record_id)
                if not rows:
                    logger.warning(f"Delete skipped, record not found: {record_id}")
                    return False

                self.create_backup(force=True)
                # Bottom-up so earlier row numbers stay valid
                for row_number in sorted(rows, reverse=True):
                    ws.delete_rows(row_number, 1)
                self._save(wb)
            finally:
                wb.close()

        if len(rows) > 1:
            logger.warning(f"Deleted {len(rows)} rows sharing id {record_id}")
        logger.info(f"Record deleted: {record_id}")
        return True
