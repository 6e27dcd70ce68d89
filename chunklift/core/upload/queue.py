"""
Transfer queue manager.

Runs many transfers under a concurrency ceiling. Workers never touch shared
state: they publish events onto one asyncio queue and a single aggregator
task applies them to the items, records throughput, frees slots and starts
the next queued item.
"""
import asyncio
from typing import Callable, Dict, Iterable, List, Optional, Set, Union
from pathlib import Path

from .coordinator import TransferCoordinator
from .models import (
    BatchState,
    CompletedEvent,
    FailedEvent,
    ProgressEvent,
    SessionEvent,
    TransferEvent,
    TransferItem,
    TransferStatus,
)
from .protocols import TransferClientProtocol
from .services import FileValidator
from .throughput import ThroughputMeter
from ..config import TransferConfig
from ..events import EventEmitter
from ..exceptions import ChunkLiftException
from ..logging import get_logger
from ..session.models import utcnow

logger = get_logger('chunklift.upload.queue')


class TransferQueueManager:
    """
    Client-side queue of resumable transfers.

    Events (subscribe with ``on``):
    - ``progress(item, batch_state)`` after every acknowledged chunk
    - ``status(item)`` on every status change
    - ``complete(item)`` when an item is registered
    - ``error(item)`` when an item fails

    Example:
        >>> async with HttpTransferClient(config) as client:
        ...     queue = TransferQueueManager(client, config)
        ...     queue.enqueue(["model.ifc", "plan.pdf"], destination_folder="folder-1")
        ...     await queue.wait()
        ...     await queue.close()
    """

    def __init__(
        self,
        client: TransferClientProtocol,
        config: Optional[TransferConfig] = None,
        coordinator: Optional[TransferCoordinator] = None,
        meter: Optional[ThroughputMeter] = None
    ):
        """
        Initialize the queue.

        Args:
            client: Transfer protocol client shared by all workers
            config: Transfer configuration
            coordinator: Drives single items (built from client and config if omitted)
            meter: Throughput meter (trailing window from config if omitted)
        """
        self._client = client
        self._config = config or TransferConfig.default()
        self._coordinator = coordinator or TransferCoordinator(client, self._config)
        self._meter = meter or ThroughputMeter(self._config.speed_window)
        self._validator = FileValidator()
        self._emitter = EventEmitter('chunklift.upload.events')

        self._items: Dict[str, TransferItem] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()
        self._events: Optional[asyncio.Queue] = None
        self._aggregator: Optional[asyncio.Task] = None
        self._idle: Optional[asyncio.Event] = None

    @property
    def max_parallel_uploads(self) -> int:
        return self._config.max_parallel_uploads

    @property
    def items(self) -> List[TransferItem]:
        """All items in enqueue order."""
        return list(self._items.values())

    @property
    def active_count(self) -> int:
        """Items holding a concurrency slot."""
        return len(self._workers)

    @property
    def batch_state(self) -> BatchState:
        items = self._items.values()
        total = sum(item.size for item in items)
        transferred = sum(item.bytes_transferred for item in items)
        counts = {status: 0 for status in TransferStatus}
        for item in items:
            counts[item.status] += 1
        return BatchState(
            total_bytes=total,
            transferred_bytes=transferred,
            speed=self._meter.speed(),
            eta=self._meter.eta(total - transferred),
            active=len(self._workers),
            queued=counts[TransferStatus.QUEUED],
            paused=counts[TransferStatus.PAUSED],
            complete=counts[TransferStatus.COMPLETE],
            failed=counts[TransferStatus.FAILED],
        )

    def on(self, event: str, callback: Callable) -> 'TransferQueueManager':
        """Register an observer."""
        self._emitter.on(event, callback)
        return self

    def off(self, event: str, callback: Optional[Callable] = None) -> 'TransferQueueManager':
        self._emitter.off(event, callback)
        return self

    def get(self, item_id: str) -> Optional[TransferItem]:
        return self._items.get(item_id)

    def enqueue(
        self,
        files: Iterable[Union[str, Path]],
        destination_folder: str = ''
    ) -> List[TransferItem]:
        """
        Queue files for transfer into ``destination_folder``.

        Every path is validated before anything is queued.

        Raises:
            FileNotFoundError: If a file doesn't exist
            ValueError: If a path is not a regular file
        """
        validated = [self._validator.validate(path) for path in files]
        self._ensure_running()

        added = []
        for path, size in validated:
            item = TransferItem(path=path, size=size, folder_id=destination_folder)
            self._items[item.id] = item
            added.append(item)
            logger.debug(f"Queued {item.name} ({size} bytes) as {item.id}")

        self._schedule()
        return added

    def pause(self, item_id: str) -> bool:
        """
        Stop a queued or running item, keeping its session for ``resume``.

        Returns:
            False if the item cannot be paused
        """
        item = self._items.get(item_id)
        if item is None or item.status not in (TransferStatus.QUEUED, TransferStatus.TRANSFERRING):
            return False
        self._stop(item)
        self._set_status(item, TransferStatus.PAUSED)
        self._schedule()
        return True

    def resume(self, item_id: str) -> bool:
        """Re-queue a paused item. It continues from the endpoint's offset."""
        item = self._items.get(item_id)
        if item is None or item.status != TransferStatus.PAUSED:
            return False
        self._ensure_running()
        self._set_status(item, TransferStatus.QUEUED)
        self._schedule()
        return True

    def retry(self, item_id: str) -> bool:
        """Re-queue a failed item."""
        item = self._items.get(item_id)
        if item is None or item.status != TransferStatus.FAILED:
            return False
        self._ensure_running()
        item.error = None
        self._set_status(item, TransferStatus.QUEUED)
        self._schedule()
        return True

    def remove(self, item_id: str) -> bool:
        """
        Drop an item, aborting it if it is running.

        The endpoint session of an item that has not sent all its bytes is
        cancelled in the background. Fully sent items keep their session so
        a failed registration can still be retried on the endpoint.
        """
        item = self._items.pop(item_id, None)
        if item is None:
            return False
        self._stop(item)
        if item.session_url and item.bytes_transferred < item.size:
            self._spawn(self._cancel_session(item.name, item.session_url))
        logger.debug(f"Removed {item.name} ({item.id})")
        self._schedule()
        return True

    def cancel_all(self) -> int:
        """
        Abort every running transfer and pause every queued one.

        Returns:
            Number of items paused
        """
        paused = 0
        for item in list(self._items.values()):
            if item.status in (TransferStatus.QUEUED, TransferStatus.TRANSFERRING):
                self._stop(item)
                self._set_status(item, TransferStatus.PAUSED)
                paused += 1
        self._update_idle()
        return paused

    def clear_completed(self) -> int:
        """Drop completed items. Returns how many were dropped."""
        done = [i for i, item in self._items.items() if item.status == TransferStatus.COMPLETE]
        for item_id in done:
            del self._items[item_id]
        return len(done)

    async def wait(self) -> BatchState:
        """Wait until no item is queued or running."""
        if self._idle is not None:
            await self._idle.wait()
        return self.batch_state

    async def close(self) -> None:
        """Cancel workers and the aggregator. Items keep their state."""
        tasks = list(self._workers.values()) + list(self._background)
        if self._aggregator is not None:
            tasks.append(self._aggregator)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._workers.clear()
        self._aggregator = None
        self._events = None

    def _ensure_running(self) -> None:
        """Start the aggregator on first use (needs a running loop)."""
        if self._events is None:
            self._events = asyncio.Queue()
            self._idle = asyncio.Event()
        if self._aggregator is None or self._aggregator.done():
            self._aggregator = asyncio.create_task(self._aggregate())

    def _schedule(self) -> None:
        for item in list(self._items.values()):
            if len(self._workers) >= self._config.max_parallel_uploads:
                break
            if item.status == TransferStatus.QUEUED:
                self._start(item)
        self._update_idle()

    def _start(self, item: TransferItem) -> None:
        item.attempt += 1
        item.started_at = utcnow()
        item.completed_at = None
        self._set_status(item, TransferStatus.TRANSFERRING)
        self._workers[item.id] = asyncio.create_task(self._worker(item, item.attempt))
        logger.info(f"Starting {item.name} ({len(self._workers)}/{self.max_parallel_uploads} active)")

    def _stop(self, item: TransferItem) -> None:
        """Cancel the item's worker and invalidate its in-flight events."""
        task = self._workers.pop(item.id, None)
        if task is not None:
            task.cancel()
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        item.attempt += 1

    async def _worker(self, item: TransferItem, attempt: int) -> None:
        try:
            file_version_id = await self._coordinator.run(item, self._events.put_nowait)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._events.put_nowait(FailedEvent(item.id, attempt, e))
        else:
            self._events.put_nowait(CompletedEvent(item.id, attempt, file_version_id))

    async def _aggregate(self) -> None:
        while True:
            event = await self._events.get()
            try:
                self._apply(event)
            except Exception as e:
                logger.error(f"Failed to apply {type(event).__name__}: {e}")
            finally:
                self._events.task_done()

    def _apply(self, event: TransferEvent) -> None:
        item = self._items.get(event.item_id)
        if item is None or event.attempt != item.attempt:
            return

        if isinstance(event, SessionEvent):
            item.session_url = event.session_url

        elif isinstance(event, ProgressEvent):
            item.bytes_transferred = event.offset
            self._meter.record(sum(i.bytes_transferred for i in self._items.values()))
            if item.size and event.offset >= item.size:
                self._set_status(item, TransferStatus.COMPLETING)
            self._emitter.emit('progress', item, self.batch_state)

        elif isinstance(event, CompletedEvent):
            self._workers.pop(item.id, None)
            item.bytes_transferred = item.size
            item.file_version_id = event.file_version_id
            item.completed_at = utcnow()
            self._set_status(item, TransferStatus.COMPLETE)
            logger.info(f"Completed {item.name} as file version {event.file_version_id}")
            self._emitter.emit('complete', item)
            self._schedule()

        elif isinstance(event, FailedEvent):
            self._workers.pop(item.id, None)
            error = event.error
            item.error = error.message if isinstance(error, ChunkLiftException) else str(error)
            self._set_status(item, TransferStatus.FAILED)
            logger.error(f"Transfer of {item.name} failed at offset {item.bytes_transferred}: {item.error}")
            self._emitter.emit('error', item)
            self._schedule()

    def _set_status(self, item: TransferItem, status: TransferStatus) -> None:
        if item.status != status:
            item.status = status
            self._emitter.emit('status', item)

    def _update_idle(self) -> None:
        if self._idle is None:
            return
        if any(item.status.is_active for item in self._items.values()):
            self._idle.clear()
        else:
            self._idle.set()

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _cancel_session(self, name: str, session_url: str) -> None:
        try:
            await self._client.cancel(session_url)
        except ChunkLiftException as e:
            logger.warning(f"Could not cancel session of {name}: {e}")
