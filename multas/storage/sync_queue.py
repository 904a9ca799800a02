"""Background sync queue for the remote mirror.

Local writes enqueue a SyncTask and re-arm a debounce timer; when the timer
fires the whole queue is swapped out and pushed to the remote mirror in one
drain. Adds are appended in a single multi-row call, updates and deletes are
applied one by one in enqueue order. A failed drain puts every task that was
not applied back at the front of the queue with ``retries`` incremented;
tasks reaching ``max_retries`` are dropped and logged.

Drains are single-flight: ``_sync_lock`` is acquired without blocking, so a
second drain started while one is in flight returns immediately.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from multas.logging_config import log_sync
from multas.types import SyncOperation, SyncResult, SyncTask

logger = logging.getLogger(__name__)

DEFAULT_BATCH_INTERVAL = 5.0
DEFAULT_PERIODIC_INTERVAL = 300.0
DEFAULT_MAX_RETRIES = 3


class SyncQueue:
    """Debounced, retrying queue of mutations for a RemoteMirror.

    Args:
        mirror: Object with ``append_records``, ``update_post`` and
            ``delete_post`` (normally a RemoteMirror).
        batch_interval: Debounce delay in seconds.
        max_retries: Failed drains a task survives before being dropped.
        periodic_interval: Seconds between background ticks once started.
        timer_factory: ``threading.Timer``-compatible factory; tests inject
            one that fires on demand.
    """

    def __init__(
        self,
        mirror,
        *,
        batch_interval: float = DEFAULT_BATCH_INTERVAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        periodic_interval: float = DEFAULT_PERIODIC_INTERVAL,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        if mirror is None:
            raise ValueError("SyncQueue requires a remote mirror")
        self.mirror = mirror
        self.batch_interval = batch_interval
        self.max_retries = max_retries
        self.periodic_interval = periodic_interval
        self._timer_factory = timer_factory

        self._queue: List[SyncTask] = []
        self._queue_lock = threading.Lock()
        self._sync_lock = threading.Lock()

        self._timer = None
        self._timer_lock = threading.Lock()

        self._stop_event = threading.Event()
        self._periodic_thread: Optional[threading.Thread] = None

    # === Queue state ===

    @property
    def queue_length(self) -> int:
        with self._queue_lock:
            return len(self._queue)

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    def pending(self) -> List[SyncTask]:
        """Snapshot of queued tasks."""
        with self._queue_lock:
            return list(self._queue)

    def get_status(self) -> Dict[str, Any]:
        return {
            "queue_length": self.queue_length,
            "is_syncing": self.is_syncing,
            "has_remote_mirror": True,
        }

    # === Enqueue + debounce ===

    def enqueue(self, operation: SyncOperation, payload: Dict[str, Any]) -> SyncTask:
        """Queue a mutation and restart the debounce timer."""
        task = SyncTask(operation=SyncOperation(operation), payload=dict(payload))
        with self._queue_lock:
            self._queue.append(task)
        self._reset_timer()
        logger.debug(f"Queued {task.operation.value} for {task.record_id}")
        return task

    def _reset_timer(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self.batch_interval, self._on_timer)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _on_timer(self) -> None:
        with self._timer_lock:
            self._timer = None
        self._run_safely()

    def _run_safely(self) -> None:
        try:
            self.process()
        except Exception as e:
            logger.error(f"Unexpected error during background sync: {e}", exc_info=True)

    # === Drain ===

    def process(self) -> SyncResult:
        """Drain the queue once.

        Returns an empty result when a drain is already in flight or the
        queue is empty. Tasks enqueued during the drain wait for the next one.
        """
        if not self._sync_lock.acquire(blocking=False):
            logger.debug("Sync already in progress, skipping")
            return SyncResult()
        try:
            with self._queue_lock:
                batch, self._queue = self._queue, []
            if not batch:
                return SyncResult()

            result = self._push(batch)
            log_sync(logger, result)
            return result
        finally:
            self._sync_lock.release()

    def _push(self, batch: List[SyncTask]) -> SyncResult:
        result = SyncResult()
        adds = [t for t in batch if t.operation == SyncOperation.ADD]
        others = [t for t in batch if t.operation != SyncOperation.ADD]
        applied: set = set()

        try:
            if adds:
                self.mirror.append_records([t.payload for t in adds])
                applied.update(id(t) for t in adds)
                result.pushed += len(adds)

            for task in others:
                fields = {k: v for k, v in task.payload.items() if k != "id"}
                if task.operation == SyncOperation.UPDATE:
                    found = self.mirror.update_post(task.record_id, fields)
                else:
                    found = self.mirror.delete_post(task.record_id)
                if not found:
                    logger.warning(
                        f"Remote {task.operation.value} found no row for {task.record_id}"
                    )
                applied.add(id(task))
                result.pushed += 1
        except Exception as e:
            result.errors.append(str(e))
            logger.error(f"Remote sync failed: {e}")
            self._requeue_failed([t for t in batch if id(t) not in applied], result)

        return result

    def _requeue_failed(self, failed: List[SyncTask], result: SyncResult) -> None:
        keep: List[SyncTask] = []
        for task in failed:
            task.retries += 1
            if task.retries < self.max_retries:
                keep.append(task)
            else:
                result.dropped += 1
                logger.error(
                    f"Dropping {task.operation.value} for {task.record_id} "
                    f"after {task.retries} failed attempt(s)"
                )
        result.requeued = len(keep)
        if keep:
            with self._queue_lock:
                self._queue[:0] = keep

    def force_sync(self) -> SyncResult:
        """Drain synchronously, cancelling any pending debounce timer."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        return self.process()

    # === Periodic tick ===

    def tick(self) -> Optional[SyncResult]:
        """Drain if work is waiting and nothing is in flight."""
        if self.queue_length == 0 or self.is_syncing:
            return None
        logger.debug(f"Periodic sync: {self.queue_length} queued task(s)")
        return self.process()

    def _periodic_loop(self) -> None:
        while not self._stop_event.wait(self.periodic_interval):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Periodic sync tick failed: {e}", exc_info=True)

    def start(self) -> None:
        """Start the periodic background thread. Safe to call twice."""
        if self._periodic_thread is not None and self._periodic_thread.is_alive():
            return
        self._stop_event.clear()
        self._periodic_thread = threading.Thread(
            target=self._periodic_loop, name="multas-sync", daemon=True
        )
        self._periodic_thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the periodic thread and cancel the debounce timer.

        Queued tasks stay in memory; call ``force_sync`` first to flush them.
        """
        self._stop_event.set()
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._periodic_thread is not None:
            self._periodic_thread.join(timeout)
            self._periodic_thread = None
