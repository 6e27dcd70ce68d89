"""
Data models for the client-side transfer queue.

Uses dataclasses for items, aggregate state and the events workers publish
to the queue's aggregator.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union
import uuid

from ...session.models import SessionMetadata, split_extension


class TransferStatus(str, Enum):
    """Lifecycle of a queued transfer."""
    QUEUED = 'queued'
    TRANSFERRING = 'transferring'
    PAUSED = 'paused'
    COMPLETING = 'completing'
    COMPLETE = 'complete'
    FAILED = 'failed'
    
    @property
    def is_active(self) -> bool:
        """Queued or running items keep ``wait()`` from returning."""
        return self in (
            TransferStatus.QUEUED,
            TransferStatus.TRANSFERRING,
            TransferStatus.COMPLETING,
        )


@dataclass
class TransferItem:
    """
    One file in the transfer queue.
    
    Attributes:
        path: Source file
        size: Declared total length
        folder_id: Destination folder ('' for the project root)
        status: Current status
        bytes_transferred: Bytes acknowledged by the endpoint
        error: Last failure message
        session_url: Session handle issued by the endpoint
        file_version_id: Registered file version once complete
        attempt: Start counter, bumped on every start, pause and removal
    
    Example:
        >>> item = TransferItem(path=Path("model.ifc"), size=12 * 1024 * 1024)
        >>> item.ext
        'ifc'
    """
    path: Path
    size: int
    folder_id: str = ''
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ''
    ext: str = ''
    filetype: str = 'application/octet-stream'
    status: TransferStatus = TransferStatus.QUEUED
    bytes_transferred: int = 0
    error: Optional[str] = None
    session_url: Optional[str] = None
    file_version_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    attempt: int = 0
    
    def __post_init__(self):
        if isinstance(self.path, str):
            self.path = Path(self.path)
        if not self.name:
            self.name = self.path.name
        if not self.ext:
            self.ext = split_extension(self.name)
    
    @property
    def percentage(self) -> float:
        """Returns transfer progress as percentage."""
        if self.size == 0:
            return 100.0 if self.status == TransferStatus.COMPLETE else 0.0
        return (self.bytes_transferred / self.size) * 100
    
    def metadata(self, uploader_id: str = '') -> SessionMetadata:
        """Metadata declared when the session is created."""
        return SessionMetadata(
            filename=self.name,
            ext=self.ext,
            folder_id=self.folder_id,
            uploader_id=uploader_id,
            filetype=self.filetype,
        )


@dataclass(frozen=True)
class BatchState:
    """
    Aggregate view over every item in the queue.
    
    Attributes:
        total_bytes: Sum of declared sizes
        transferred_bytes: Sum of acknowledged bytes
        speed: Throughput over the trailing window in bytes/second
        eta: Seconds left, or None when it cannot be estimated
        active: Items with a running worker
        queued: Items waiting for a slot
        paused: Paused items
        complete: Completed items
        failed: Failed items
    """
    total_bytes: int = 0
    transferred_bytes: int = 0
    speed: float = 0.0
    eta: Optional[float] = None
    active: int = 0
    queued: int = 0
    paused: int = 0
    complete: int = 0
    failed: int = 0
    
    @property
    def percentage(self) -> float:
        if self.total_bytes == 0:
            return 0.0
        return (self.transferred_bytes / self.total_bytes) * 100
    
    @property
    def is_transferring(self) -> bool:
        return self.active > 0


@dataclass(frozen=True)
class ServerAck:
    """
    Endpoint response to a create, send or offset query.
    
    Attributes:
        offset: Durable offset reported by the endpoint
        total_length: Declared length, when reported
        file_version_id: Registered file version, when the transfer completed
        registration_error: Registration failure, when the transfer completed
    """
    offset: int
    total_length: Optional[int] = None
    file_version_id: Optional[str] = None
    registration_error: Optional[str] = None


@dataclass(frozen=True)
class TransferEvent:
    """Base for events a worker publishes to the aggregator."""
    item_id: str
    attempt: int


@dataclass(frozen=True)
class SessionEvent(TransferEvent):
    """The endpoint issued (or re-issued) a session for the item."""
    session_url: str


@dataclass(frozen=True)
class ProgressEvent(TransferEvent):
    """The endpoint acknowledged bytes up to ``offset``."""
    offset: int


@dataclass(frozen=True)
class CompletedEvent(TransferEvent):
    """The transfer completed and was registered."""
    file_version_id: Optional[str]


@dataclass(frozen=True)
class FailedEvent(TransferEvent):
    """The worker gave up."""
    error: Union[Exception, str]
