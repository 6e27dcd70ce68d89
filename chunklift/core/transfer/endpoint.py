"""
Chunked transfer endpoint.

Protocol-agnostic server side of the resumable transfer: sessions, offset
checks, durable appends and the completion hand-off. The HTTP routes in
``routes`` are a thin layer over this class.
"""
import asyncio
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from ..config import ServerConfig
from ..crypto import ChunkChecksum
from ..exceptions import (
    ChunkOutOfRange,
    OffsetConflict,
    RegistrationFailed,
    SessionClosed,
    SessionNotFound,
    StorageUnavailable,
    TransferError,
    UploadTooLarge,
)
from ..logging import get_logger, format_size
from ..retry import ExponentialBackoffStrategy, RetryStrategy
from ..session import SessionMetadata, SessionStore, TransferCompleted, TransferSession
from ..storage import ObjectStorage


CompletionHandler = Callable[[TransferCompleted], Awaitable[str]]

logger = get_logger('chunklift.transfer.endpoint')


@dataclass(frozen=True)
class ChunkResult:
    """
    Outcome of an accepted chunk.

    Attributes:
        offset: Durable offset after the chunk
        total_length: Declared total length
        file_version_id: Set when the chunk completed the transfer and it was registered
        registration_error: Set when the chunk completed the transfer but registration failed
    """
    offset: int
    total_length: int
    file_version_id: Optional[str] = None
    registration_error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.offset == self.total_length

    @classmethod
    def from_session(cls, session: TransferSession) -> 'ChunkResult':
        return cls(
            offset=session.offset,
            total_length=session.total_length,
            file_version_id=session.file_version_id,
            registration_error=session.registration_error,
        )


class ChunkedTransferEndpoint:
    """
    Accepts resumable chunked transfers.

    Chunks of one session are serialized by a per-session lock; different
    sessions never wait on each other. The declared offset of every chunk
    must equal the durable offset, which is the only ordering control.

    Example:
        >>> endpoint = ChunkedTransferEndpoint(store, storage, completion_handler=registrar.register)
        >>> session = await endpoint.create(12, SessionMetadata("model.ifc"))
        >>> result = await endpoint.send_chunk(session.session_id, 0, b"hello world!")
        >>> result.file_version_id
    """

    def __init__(
        self,
        store: SessionStore,
        storage: ObjectStorage,
        config: Optional[ServerConfig] = None,
        completion_handler: Optional[CompletionHandler] = None,
        retry_strategy: Optional[RetryStrategy] = None
    ):
        """
        Initialize the endpoint.

        Args:
            store: Session store
            storage: Object storage receiving the bytes
            config: Server configuration
            completion_handler: Coroutine called once per terminal session
            retry_strategy: Retry policy for storage appends
        """
        self._store = store
        self._storage = storage
        self._config = config or ServerConfig()
        self._completion_handler = completion_handler
        self._retry = retry_strategy or ExponentialBackoffStrategy(
            max_retries=self._config.storage_retries,
            base_delay=self._config.storage_retry_delay
        )
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def config(self) -> ServerConfig:
        return self._config

    def set_completion_handler(self, handler: Optional[CompletionHandler]) -> None:
        self._completion_handler = handler

    async def create(self, total_length: int, metadata: SessionMetadata) -> TransferSession:
        """
        Open a session for ``total_length`` bytes.

        A zero-length session is terminal at once and completes immediately.

        Raises:
            TransferError: If the length is negative
            UploadTooLarge: If the length exceeds ``max_upload_size``
            StorageUnavailable: If the backing object cannot be created
        """
        if total_length < 0:
            raise TransferError(f"Invalid Upload-Length: {total_length}")
        if total_length > self._config.max_upload_size:
            raise UploadTooLarge(
                f"Upload of {total_length} bytes exceeds the maximum of "
                f"{self._config.max_upload_size} bytes"
            )

        session_id = uuid.uuid4().hex
        session = TransferSession(
            session_id=session_id,
            total_length=total_length,
            metadata=metadata,
            object_key=f"uploads/{session_id}",
        )
        await self._storage.create_object(session.object_key)
        self._store.save(session)
        logger.info(
            f"Created session {session_id} for {metadata.filename} "
            f"({format_size(total_length)})"
        )

        if session.is_terminal:
            async with self._lock_for(session_id):
                await self._complete(session)
        return session

    async def send_chunk(
        self,
        session_id: str,
        offset: int,
        data: bytes,
        checksum: Optional[str] = None
    ) -> ChunkResult:
        """
        Append a chunk at ``offset``.

        Rejections leave the session untouched.

        Args:
            session_id: Session identifier
            offset: Offset the caller believes is durable
            data: Chunk bytes
            checksum: Optional ``Upload-Checksum`` header value

        Raises:
            SessionNotFound: If the session does not exist
            SessionClosed: If the session is already terminal
            OffsetConflict: If ``offset`` differs from the durable offset
            ChunkOutOfRange: If the chunk overruns the declared length
            ChecksumMismatch: If the chunk does not match ``checksum``
            StorageUnavailable: If the append still fails after retries
        """
        async with self._lock_for(session_id):
            session = self._load(session_id)

            if session.is_terminal:
                raise SessionClosed(self._closed_message(session))
            if offset != session.offset:
                raise OffsetConflict(
                    f"Offset {offset} does not match durable offset {session.offset}",
                    expected=session.offset,
                    actual=offset
                )
            if offset + len(data) > session.total_length:
                raise ChunkOutOfRange(
                    f"Chunk of {len(data)} bytes at {offset} overruns "
                    f"declared length {session.total_length}"
                )
            if checksum:
                ChunkChecksum.verify(checksum, data)

            if data:
                await self._append(session, offset, data)
                session.advance(len(data))
                self._store.save(session)
                logger.debug(
                    f"Session {session_id}: accepted {len(data)} bytes, "
                    f"offset {session.offset}/{session.total_length}"
                )

            if session.is_terminal:
                await self._complete(session)
            return ChunkResult.from_session(session)

    async def query_offset(self, session_id: str) -> Tuple[int, int]:
        """
        Returns:
            Tuple of (durable offset, total length)

        Raises:
            SessionNotFound: If the session does not exist
        """
        session = await self.get_session(session_id)
        return session.offset, session.total_length

    async def cancel(self, session_id: str) -> bool:
        """
        Delete an unfinished session and its partial object.

        Terminal sessions are kept with their object: the bytes either
        belong to a catalog entry or wait for ``retry_completion``.

        Returns:
            False if the session did not exist

        Raises:
            SessionClosed: If the session is terminal
        """
        async with self._lock_for(session_id):
            session = self._store.load(session_id)
            if session is None:
                self._locks.pop(session_id, None)
                return False
            if session.is_terminal:
                raise SessionClosed(self._closed_message(session))
            self._store.delete(session_id)
            self._locks.pop(session_id, None)

        try:
            await self._storage.delete_object(session.object_key)
        except StorageUnavailable as e:
            logger.warning(f"Could not delete object {session.object_key}: {e}")
        logger.info(f"Cancelled session {session_id} at offset {session.offset}")
        return True

    async def retry_completion(self, session_id: str) -> str:
        """
        Deliver the completion of a terminal session again.

        Used by operators after a registration failure. A session that is
        already registered returns its file version without a new delivery.

        Returns:
            File-version identifier

        Raises:
            SessionNotFound: If the session does not exist
            TransferError: If the session is not terminal
            RegistrationFailed: If registration fails again
        """
        async with self._lock_for(session_id):
            session = self._load(session_id)
            if not session.is_terminal:
                raise TransferError(
                    f"Session {session_id} is at {session.offset}/{session.total_length}, not complete"
                )
            if not session.is_registered:
                await self._complete(session)

        if session.registration_error:
            raise RegistrationFailed(session.registration_error, session_id=session_id)
        return session.file_version_id

    async def get_session(self, session_id: str) -> TransferSession:
        """
        Current state of a session.

        A terminal session whose completion is still being delivered is
        returned once the delivery has settled.

        Raises:
            SessionNotFound: If the session does not exist
        """
        session = self._load(session_id)
        if session.is_terminal and not session.is_registered and not session.registration_error:
            async with self._lock_for(session_id):
                session = self._load(session_id)
        return session

    def list_unregistered(self) -> List[TransferSession]:
        """Terminal sessions still waiting for a successful registration."""
        return [s for s in self._store.list_sessions(terminal=True) if not s.is_registered]

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _load(self, session_id: str) -> TransferSession:
        session = self._store.load(session_id)
        if session is None:
            self._locks.pop(session_id, None)
            raise SessionNotFound(f"Session {session_id} not found")
        return session

    @staticmethod
    def _closed_message(session: TransferSession) -> str:
        if session.is_registered:
            return (
                f"Session {session.session_id} is complete and registered as "
                f"file version {session.file_version_id}"
            )
        return f"Session {session.session_id} is already complete"

    async def _append(self, session: TransferSession, offset: int, data: bytes) -> None:
        retry_count = 0
        while True:
            try:
                await self._storage.append_chunk(session.object_key, offset, data)
                return
            except StorageUnavailable as e:
                if not self._retry.should_retry(e, retry_count):
                    logger.error(
                        f"Session {session.session_id}: append at {offset} failed "
                        f"after {retry_count} retries: {e}"
                    )
                    raise
                logger.warning(
                    f"Session {session.session_id}: append at {offset} failed, "
                    f"retry {retry_count + 1}: {e}"
                )
                await self._retry.wait_async(retry_count)
                retry_count += 1

    async def _complete(self, session: TransferSession) -> None:
        """Hand a terminal session to the completion handler (lock held)."""
        if self._completion_handler is None:
            logger.info(f"Session {session.session_id} complete, no completion handler")
            return

        try:
            file_version_id = await self._completion_handler(
                TransferCompleted.from_session(session)
            )
        except Exception as e:
            message = e.message if isinstance(e, RegistrationFailed) else str(e)
            session.registration_error = message
            session.update_timestamp()
            self._store.save(session)
            logger.error(
                f"Session {session.session_id} complete but not registered: {message}"
            )
            return

        session.file_version_id = file_version_id
        session.registration_error = None
        session.update_timestamp()
        self._store.save(session)
        self._locks.pop(session.session_id, None)
        logger.info(
            f"Session {session.session_id} registered as file version {file_version_id}"
        )
