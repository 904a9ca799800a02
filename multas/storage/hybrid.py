"""Hybrid storage: local workbook primary, remote mirror in the background.

Writes land in the local workbook synchronously and are then queued for the
remote mirror. Reads only ever touch the local workbook. Without a mirror
the facade degrades to local-only and queues nothing.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from multas.logging_config import log_timing
from multas.types import AddResult, Record, StorageMode, SyncOperation, SyncResult
from multas.utils import local_timestamp

from .codec import build_record, validate_update_fields
from .sync_queue import SyncQueue
from .workbook import WorkbookStorage

logger = logging.getLogger(__name__)


class HybridStorage:
    """Storage facade for long-running processes with a writable disk."""

    mode = StorageMode.HYBRID

    def __init__(
        self,
        local: WorkbookStorage,
        mirror=None,
        sync_queue: Optional[SyncQueue] = None,
    ):
        self.local = local
        self.mirror = mirror
        if sync_queue is None and mirror is not None:
            sync_queue = SyncQueue(mirror)
        self.sync_queue = sync_queue

        if self.sync_queue is None:
            logger.info("No remote mirror configured; storing locally only")

    def start(self) -> None:
        """Start periodic background sync."""
        if self.sync_queue is not None:
            self.sync_queue.start()

    def close(self, flush: bool = True) -> None:
        """Stop background sync, optionally draining the queue first."""
        if self.sync_queue is None:
            return
        if flush:
            self.sync_queue.force_sync()
        self.sync_queue.stop()

    # === Reads ===

    def load_all_records(self) -> List[Record]:
        return self.local.load_all()

    def load_by_user(self, user_name: str) -> List[Record]:
        return self.local.load_by_user(user_name)

    # === Writes ===

    def add_record(self, record: Union[Record, Mapping[str, Any]]) -> AddResult:
        """Write locally, then queue the add for the mirror.

        Raises:
            ValueError: If the record is invalid.
            StorageError: If the local write (or its backup) fails.
        """
        with log_timing(logger, "add_record"):
            record = build_record(record, local_timestamp(self.local.timezone))
            row_number = self.local.add_record(record)

            if self.sync_queue is not None:
                self.sync_queue.enqueue(SyncOperation.ADD, record.to_dict())

        return AddResult(
            success=True,
            synced=False,
            row_number=row_number,
            record=record,
            local=self.sync_queue is None,
        )

    def update_post(self, record_id: str, fields: Mapping[str, Any]) -> bool:
        changes = validate_update_fields(fields)
        updated = self.local.update_post(record_id, changes)
        if updated and changes and self.sync_queue is not None:
            self.sync_queue.enqueue(SyncOperation.UPDATE, {"id": record_id, **changes})
        return updated

    def delete_post(self, record_id: str) -> bool:
        deleted = self.local.delete_post(record_id)
        if deleted and self.sync_queue is not None:
            self.sync_queue.enqueue(SyncOperation.DELETE, {"id": record_id})
        return deleted

    # === Sync ===

    def get_sync_status(self) -> Dict[str, Any]:
        if self.sync_queue is None:
            return {"queue_length": 0, "is_syncing": False, "has_remote_mirror": False}
        return self.sync_queue.get_status()

    def reconcile(self) -> int:
        """Queue an add for every local record the mirror does not hold.

        The sync queue lives in memory, so changes made by a process that
        exited before draining never reach the mirror on their own. This
        compares ids on both sides and re-queues what is missing.

        Returns:
            Number of records queued.

        Raises:
            RemoteMirrorError: If the mirror cannot be read.
        """
        if self.sync_queue is None:
            return 0
        remote_ids = {r.id for r in self.sync_queue.mirror.load_all()}
        pending_ids = {
            t.record_id for t in self.sync_queue.pending() if t.operation is SyncOperation.ADD
        }
        missing = [
            r for r in self.local.load_all() if r.id not in remote_ids and r.id not in pending_ids
        ]
        for record in missing:
            self.sync_queue.enqueue(SyncOperation.ADD, record.to_dict())
        if missing:
            logger.info(f"Queued {len(missing)} local record(s) missing from the mirror")
        return len(missing)

    def force_sync(self) -> SyncResult:
        if self.sync_queue is None:
            return SyncResult()
        return self.sync_queue.force_sync()

    def get_stats(self) -> Dict[str, Any]:
        stats = self.local.get_stats()
        stats["storage"] = "Excel + Google Sheets" if self.sync_queue else "Excel"
        stats["sync_status"] = self.get_sync_status()
        return stats
