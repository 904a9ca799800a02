"""Remote-only storage for serverless deployments.

Every operation goes straight to the remote spreadsheet and remote errors
propagate to the caller. Mutations hold a process-local lock so the
fetch-locate-write sequence of update/delete is not interleaved within one
process; other processes can still race on row positions.
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Union

from multas.logging_config import log_timing
from multas.types import AddResult, Record, StorageMode, SyncResult
from multas.utils import local_timestamp

from .codec import build_record
from .sheets import RemoteMirror

logger = logging.getLogger(__name__)


class SheetsStorage:
    """Storage facade with the remote spreadsheet as the only store."""

    mode = StorageMode.REMOTE

    def __init__(self, mirror: RemoteMirror):
        self.mirror = mirror
        self._write_lock = threading.Lock()

    def start(self) -> None:
        pass

    def close(self, flush: bool = True) -> None:
        pass

    def load_all_records(self) -> List[Record]:
        with log_timing(logger, "load_all_records"):
            return self.mirror.load_all()

    def load_by_user(self, user_name: str) -> List[Record]:
        return self.mirror.load_by_user(user_name)

    def add_record(self, record: Union[Record, Mapping[str, Any]]) -> AddResult:
        record = build_record(record, local_timestamp(self.mirror.timezone))
        with self._write_lock, log_timing(logger, "add_record"):
            row_number = self.mirror.add_record(record)
        return AddResult(success=True, synced=True, row_number=row_number, record=record)

    def update_post(self, record_id: str, fields: Mapping[str, Any]) -> bool:
        with self._write_lock:
            return self.mirror.update_post(record_id, fields)

    def delete_post(self, record_id: str) -> bool:
        with self._write_lock:
            return self.mirror.delete_post(record_id)

    def get_sync_status(self) -> Dict[str, Any]:
        return {"queue_length": 0, "is_syncing": False, "has_remote_mirror": True}

    def reconcile(self) -> int:
        return 0

    def force_sync(self) -> SyncResult:
        return SyncResult()

    def get_stats(self) -> Dict[str, Any]:
        return self.mirror.get_stats()
