"""
Offline operation queue.

Mutating requests made while the device is offline are queued, persisted
after every change and replayed in FIFO order once connectivity returns.
Delivery is at-least-once: an operation that succeeded remotely may be
replayed again if the process dies before the queue is persisted, so
executors must be idempotent.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Type

import structlog
from pydantic import BaseModel

from safehorizon.core.domain.entities import OfflineOperation, SyncResult, create_offline_operation
from safehorizon.core.domain.interfaces import KeyValueStore, Serializer
from safehorizon.infrastructure.cache.serialization import JsonSerializer
from safehorizon.infrastructure.cache.storage import FileKeyValueStore
from safehorizon.infrastructure.connectivity.monitor import ConnectivityMonitor
from safehorizon.infrastructure.monitoring.metrics import SYNC_DURATION, SYNC_OPERATIONS, SYNC_QUEUE_SIZE
from safehorizon.infrastructure.scheduling import PeriodicTask
from safehorizon.infrastructure.sync.executors import ExecutorRegistry
from safehorizon.shared.clock import Clock, system_clock
from safehorizon.shared.config import SyncConfig
from safehorizon.shared.exceptions import QueueOperationDeadError, SerializationError, StorageError
from safehorizon.shared.types import Executor, OperationKind, Payload

logger = structlog.get_logger(__name__)


class OfflineSyncManager:
    """Durable FIFO queue of offline operations with replay on reconnect."""

    def __init__(
        self,
        connectivity: ConnectivityMonitor,
        store: Optional[KeyValueStore] = None,
        executors: Optional[ExecutorRegistry] = None,
        config: Optional[SyncConfig] = None,
        serializer: Optional[Serializer] = None,
        clock: Optional[Clock] = None
    ):
        """
        Initialize the sync manager.

        Args:
            connectivity: Source of the online/offline signal
            store: Durable slot for the queue, defaults to a file under
                ``config.storage_directory``
            executors: Executors per operation type
            config: Queue configuration
            serializer: Encoder for the persisted queue
            clock: Time source for operation timestamps and pass durations
        """
        self.config = config or SyncConfig()
        self.connectivity = connectivity
        self.executors = executors or ExecutorRegistry()
        self._store = store if store is not None else FileKeyValueStore(self.config.storage_directory)
        self._serializer = serializer or JsonSerializer()
        self._clock = clock or system_clock
        self._queue: List[OfflineOperation] = []
        self._sync_lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()
        self._sync_task = PeriodicTask("offline-sync", self.config.sync_interval_seconds, self._scheduled_sync)

    @property
    def is_online(self) -> bool:
        return self.connectivity.is_online

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def pending_operations(self) -> List[OfflineOperation]:
        """Snapshot of the queue in replay order."""
        return list(self._queue)

    async def initialize(self) -> None:
        """Load the persisted queue, subscribe to connectivity and start the periodic sync."""
        await self._load()
        self.connectivity.add_listener(self._on_connectivity_change)
        self._sync_task.start()

        logger.info(
            "Offline sync manager initialized",
            online=self.is_online,
            pending_operations=len(self._queue)
        )

        if self.is_online and self._queue:
            self._schedule_sync()

    async def close(self) -> None:
        """Stop syncing and persist the queue one last time."""
        await self._sync_task.stop()
        self.connectivity.remove_listener(self._on_connectivity_change)
        await self.wait_for_sync()

        try:
            await self._persist()
        except StorageError as e:
            logger.error("Failed to persist offline queue on shutdown", error=str(e))

        logger.info("Offline sync manager closed", pending_operations=len(self._queue))

    def register_executor(
        self,
        operation_type: OperationKind,
        executor: Executor,
        payload_model: Optional[Type[BaseModel]] = None
    ) -> None:
        self.executors.register(operation_type, executor, payload_model)

    async def enqueue(self, operation: OfflineOperation) -> None:
        """
        Append an operation and persist the queue.

        A sync is started in the background when online.

        Raises:
            SerializationError: If the operation cannot be encoded; it is
                not queued
            StorageError: If the queue could not be persisted; the operation
                stays queued in memory
        """
        try:
            self._serializer.encode(operation.to_dict())
        except SerializationError as e:
            logger.warning(
                "Operation rejected, payload is not serializable",
                operation_id=operation.id,
                operation_type=operation.type_name,
                error=str(e)
            )
            raise

        self._queue.append(operation)
        SYNC_QUEUE_SIZE.set(len(self._queue))
        await self._persist()

        logger.info(
            "Operation queued",
            operation_id=operation.id,
            operation_type=operation.type_name,
            queue_size=len(self._queue)
        )

        if self.is_online:
            self._schedule_sync()

    async def queue_operation(
        self,
        operation_type: OperationKind,
        payload: Payload,
        priority: int = 1,
        max_retries: Optional[int] = None
    ) -> OfflineOperation:
        """Build an operation with a fresh id and enqueue it."""
        operation = create_offline_operation(
            operation_type,
            payload,
            priority=priority,
            max_retries=max_retries if max_retries is not None else self.config.default_max_retries,
            enqueued_at=self._clock.now(),
        )
        await self.enqueue(operation)
        return operation

    async def sync(self) -> SyncResult:
        """
        Replay queued operations in FIFO order.

        Does nothing when offline or when the queue is empty. Only one pass
        runs at a time; callers arriving during a pass wait for it and then
        run their own.

        Returns:
            Counts of succeeded, failed and dropped operations
        """
        async with self._sync_lock:
            if not self.is_online or not self._queue:
                return SyncResult(skipped=True)

            return await self._sync_pass()

    async def force_sync(self) -> SyncResult:
        """Run a sync pass now."""
        logger.info("Forced sync requested", pending_operations=len(self._queue))
        return await self.sync()

    async def clear_queue(self) -> int:
        """Drop every queued operation. Returns how many were dropped."""
        async with self._sync_lock:
            dropped = len(self._queue)
            self._queue.clear()
            SYNC_QUEUE_SIZE.set(0)
            await self._persist()

        logger.info("Offline queue cleared", dropped=dropped)
        return dropped

    def get_status(self) -> Dict[str, Any]:
        return {
            "online": self.is_online,
            "queue_size": len(self._queue),
            "sync_in_progress": self._sync_lock.locked(),
        }

    async def _sync_pass(self) -> SyncResult:
        # Caller holds self._sync_lock
        started = self._clock.monotonic()
        result = SyncResult()
        finished: List[OfflineOperation] = []

        logger.info("Starting sync", pending_operations=len(self._queue))

        for operation in list(self._queue):
            try:
                succeeded = await self.executors.dispatch(operation)
            except Exception as e:
                logger.error(
                    "Operation execution failed",
                    operation_id=operation.id,
                    operation_type=operation.type_name,
                    error=str(e)
                )
                succeeded = False

            if succeeded:
                finished.append(operation)
                result.succeeded += 1
                SYNC_OPERATIONS.labels(outcome="succeeded").inc()
                continue

            result.failed += 1
            SYNC_OPERATIONS.labels(outcome="failed").inc()
            operation.record_failure()

            if operation.is_exhausted:
                finished.append(operation)
                result.dead += 1
                SYNC_OPERATIONS.labels(outcome="dead").inc()
                dead = QueueOperationDeadError(operation.id, operation.type_name, operation.retry_count)
                logger.warning(
                    "Operation max retries exceeded",
                    operation_id=operation.id,
                    operation_type=operation.type_name,
                    error_code=dead.error_code,
                    error=dead.message
                )

        for operation in finished:
            self._queue.remove(operation)
        SYNC_QUEUE_SIZE.set(len(self._queue))

        try:
            await self._persist()
        except StorageError as e:
            logger.error("Failed to persist offline queue after sync", error=str(e))

        elapsed = self._clock.monotonic() - started
        result.duration_ms = elapsed * 1000
        SYNC_DURATION.observe(elapsed)

        logger.info(
            "Sync completed",
            succeeded=result.succeeded,
            failed=result.failed,
            dead=result.dead,
            duration_ms=round(result.duration_ms, 1)
        )
        return result

    async def _persist(self) -> None:
        async with self._persist_lock:
            records = [operation.to_dict() for operation in self._queue]
            try:
                raw = self._serializer.encode(records)
            except SerializationError as e:
                raise StorageError(f"Offline queue is not serializable: {e}", key=self.config.storage_key)
            await self._store.write(self.config.storage_key, raw)

    async def _load(self) -> None:
        try:
            raw = await self._store.read(self.config.storage_key)
        except StorageError as e:
            logger.error("Failed to read persisted offline queue", error=str(e))
            return

        if raw is None:
            return

        try:
            records = self._serializer.decode(raw)
        except SerializationError as e:
            logger.error("Persisted offline queue is corrupt, starting empty", error=str(e))
            return

        if not isinstance(records, list):
            logger.error("Persisted offline queue is corrupt, starting empty", error="not a list")
            return

        loaded = []
        for record in records:
            try:
                loaded.append(OfflineOperation.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable queued operation", error=str(e))

        self._queue = loaded + self._queue
        SYNC_QUEUE_SIZE.set(len(self._queue))
        logger.info("Pending operations loaded", count=len(loaded))

    def _schedule_sync(self) -> None:
        task = asyncio.create_task(self._background_sync())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_sync(self) -> None:
        try:
            await self.sync()
        except Exception as e:
            logger.error("Background sync failed", error=str(e))

    async def _on_connectivity_change(self, is_online: bool) -> None:
        if is_online:
            if self._queue:
                logger.info("Network connection restored, starting sync", pending_operations=len(self._queue))
                self._schedule_sync()
        else:
            logger.info("Offline, queueing operations", pending_operations=len(self._queue))

    async def _scheduled_sync(self) -> None:
        if self.is_online and self._queue:
            await self.sync()

    async def wait_for_sync(self) -> None:
        """Wait until background sync passes started so far have finished."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
