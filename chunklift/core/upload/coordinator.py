"""
Transfer coordinator.

Drives one queue item through the transfer protocol using injected
dependencies: open (or re-open) the session, send the file in sequential
chunks, and report every acknowledged offset to the queue's aggregator.
"""
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .models import ProgressEvent, ServerAck, SessionEvent, TransferEvent, TransferItem
from .protocols import ChunkingStrategy, TransferClientProtocol
from .services import AsyncFileReader
from .strategies import FixedSizeChunkingStrategy
from ..config import TransferConfig
from ..crypto import ChunkChecksum
from ..exceptions import (
    OffsetConflict,
    RegistrationFailed,
    SessionClosed,
    SessionNotFound,
    TransferError,
)
from ..logging import get_logger, format_size
from ..retry import RetryStrategy, ScheduledBackoffStrategy

logger = get_logger('chunklift.upload.coordinator')

Publish = Callable[[TransferEvent], None]


@dataclass
class _RunState:
    """Per-run state kept across retries."""
    item_id: str
    attempt: int
    session_url: Optional[str]
    offset: int = 0


class TransferCoordinator:
    """
    Coordinates the transfer of a single item.

    Recovery rules:
    - ``OffsetConflict``/``SessionClosed``: re-query the durable offset and
      continue from it; a terminal session reports its file version
    - ``NetworkInterrupted``/``StorageUnavailable``: retry on the scheduled
      backoff, re-querying the offset first; the schedule starts over once
      a failure happens past the offset of the previous one
    - ``SessionNotFound`` on re-query: create a new session from offset 0
    - anything else (registration failures) is final
    """

    def __init__(
        self,
        client: TransferClientProtocol,
        config: Optional[TransferConfig] = None,
        chunking_strategy: Optional[ChunkingStrategy] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        file_reader_factory: Callable[[], AsyncFileReader] = AsyncFileReader
    ):
        """
        Initialize transfer coordinator.

        Args:
            client: Transfer protocol client
            config: Transfer configuration
            chunking_strategy: Strategy for chunk boundaries
            retry_strategy: Retry policy for recoverable failures
            file_reader_factory: Creates one file reader per run
        """
        self._client = client
        self._config = config or TransferConfig.default()
        self._chunking = chunking_strategy or FixedSizeChunkingStrategy(self._config.chunk_size)
        self._retry = retry_strategy or ScheduledBackoffStrategy(self._config.retry.delays)
        self._reader_factory = file_reader_factory
        self._checksum = (
            ChunkChecksum(self._config.checksum_algorithm)
            if self._config.checksum_algorithm else None
        )

    async def run(self, item: TransferItem, publish: Publish) -> Optional[str]:
        """
        Transfer ``item`` until the endpoint registers it.

        Args:
            item: Item to transfer (read-only here)
            publish: Receives session and progress events

        Returns:
            File-version identifier reported by the endpoint

        Raises:
            ChunkLiftException: When the transfer cannot complete
        """
        state = _RunState(item.id, item.attempt, item.session_url, item.bytes_transferred)
        reader = self._reader_factory()
        await reader.open_file(item.path)
        start_time = time.time()
        retry_count = 0
        failed_at = None
        try:
            while True:
                try:
                    file_version_id = await self._attempt(item, state, reader, publish)
                    break
                except Exception as e:
                    if failed_at is not None and state.offset > failed_at:
                        retry_count = 0
                    failed_at = state.offset
                    if not self._retry.should_retry(e, retry_count):
                        raise
                    delay = self._retry.delay(retry_count)
                    logger.warning(
                        f"{item.name}: {e} at offset {state.offset}, "
                        f"retry {retry_count + 1} in {delay:.0f}s"
                    )
                    await self._retry.wait_async(retry_count)
                    retry_count += 1
        finally:
            await reader.close_file()

        elapsed = time.time() - start_time
        logger.info(f"Transferred {item.name} ({format_size(item.size)}) in {elapsed:.2f}s")
        return file_version_id

    async def _attempt(
        self,
        item: TransferItem,
        state: _RunState,
        reader: AsyncFileReader,
        publish: Publish
    ) -> Optional[str]:
        ack = await self._open_session(item, state, publish)
        state.offset = ack.offset
        publish(ProgressEvent(state.item_id, state.attempt, state.offset))

        while state.offset < item.size:
            start, end = self._chunking.next_chunk(item.size, state.offset)
            data = await reader.read_chunk(item.path, start, end)
            if data is None or len(data) != end - start:
                raise TransferError(f"Could not read bytes {start}-{end} of {item.path}")

            checksum = self._checksum.header(data) if self._checksum else None
            try:
                ack = await self._client.send_chunk(state.session_url, start, data, checksum)
            except (OffsetConflict, SessionClosed) as e:
                logger.info(f"{item.name}: {e.message}, re-querying offset")
                ack = await self._client.query_offset(state.session_url)
                state.offset = ack.offset
                publish(ProgressEvent(state.item_id, state.attempt, state.offset))
                continue

            state.offset = ack.offset
            publish(ProgressEvent(state.item_id, state.attempt, state.offset))

        return self._completion(item, ack)

    async def _open_session(
        self,
        item: TransferItem,
        state: _RunState,
        publish: Publish
    ) -> ServerAck:
        """Query the existing session, or create one."""
        if state.session_url:
            try:
                return await self._client.query_offset(state.session_url)
            except SessionNotFound:
                logger.info(f"{item.name}: session {state.session_url} is gone, starting over")
                state.session_url = None

        metadata = item.metadata(self._config.uploader_id)
        state.session_url, ack = await self._client.create(item.size, metadata)
        publish(SessionEvent(state.item_id, state.attempt, state.session_url))
        return ack

    @staticmethod
    def _completion(item: TransferItem, ack: ServerAck) -> Optional[str]:
        if ack.registration_error:
            raise RegistrationFailed(
                f"{item.name} was transferred but not registered: {ack.registration_error}"
            )
        return ack.file_version_id
