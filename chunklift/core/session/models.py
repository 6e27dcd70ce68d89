"""
Transfer session models.

Contains data classes for server-side transfer state.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Dict, Optional
import json


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def split_extension(filename: str) -> str:
    """Lower-case extension of a file name without the dot ('' if none)."""
    suffix = PurePosixPath(filename).suffix
    return suffix[1:].lower() if suffix else ''


@dataclass
class SessionMetadata:
    """
    Metadata declared by the client when a transfer is created.
    
    Attributes:
        filename: Original file name
        ext: File extension without dot (derived from filename if empty)
        folder_id: Destination folder ('' or 'root' for the project root)
        uploader_id: Identity of the uploader
        filetype: Declared content type
    """
    filename: str
    ext: str = ''
    folder_id: str = ''
    uploader_id: str = ''
    filetype: str = 'application/octet-stream'
    
    def __post_init__(self):
        if not self.ext:
            self.ext = split_extension(self.filename)
        self.ext = self.ext.lower().lstrip('.')
    
    @property
    def name(self) -> str:
        """File name with its extension stripped."""
        if self.ext and self.filename.lower().endswith('.' + self.ext):
            return self.filename[:-(len(self.ext) + 1)]
        return self.filename
    
    def to_wire(self) -> Dict[str, str]:
        """Convert to the key names used in ``Upload-Metadata``."""
        return {
            'filename': self.filename,
            'ext': self.ext,
            'folderId': self.folder_id,
            'uploaderId': self.uploader_id,
            'filetype': self.filetype,
        }
    
    @classmethod
    def from_wire(cls, data: Dict[str, str]) -> 'SessionMetadata':
        """Create from decoded ``Upload-Metadata`` pairs."""
        return cls(
            filename=data.get('filename', ''),
            ext=data.get('ext', ''),
            folder_id=data.get('folderId', ''),
            uploader_id=data.get('uploaderId', ''),
            filetype=data.get('filetype') or 'application/octet-stream',
        )


@dataclass
class TransferSession:
    """
    Server-side state of one resumable transfer.
    
    Invariant: ``0 <= offset <= total_length``; the offset never decreases
    and the session is terminal exactly when ``offset == total_length``.
    
    Attributes:
        session_id: Session identifier
        total_length: Declared total length in bytes
        metadata: Client-declared metadata
        object_key: Key of the backing object in storage
        offset: Durable offset
        registration_error: Last registration failure for a terminal session
        file_version_id: File version registered for the session (set on completion)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """
    session_id: str
    total_length: int
    metadata: SessionMetadata
    object_key: str
    offset: int = 0
    registration_error: Optional[str] = None
    file_version_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    
    @property
    def is_terminal(self) -> bool:
        return self.offset == self.total_length
    
    @property
    def is_registered(self) -> bool:
        """Terminal and recorded in the catalog."""
        return self.file_version_id is not None
    
    @property
    def remaining(self) -> int:
        return self.total_length - self.offset
    
    def advance(self, length: int) -> int:
        """
        Advance the durable offset after a successful append.
        
        Returns:
            The new offset
        """
        if length < 0 or self.offset + length > self.total_length:
            raise ValueError(
                f"Cannot advance offset {self.offset} by {length} "
                f"(total {self.total_length})"
            )
        self.offset += length
        self.update_timestamp()
        return self.offset
    
    def update_timestamp(self) -> None:
        """Update the updated_at timestamp to now."""
        self.updated_at = utcnow()
    
    def to_dict(self) -> dict:
        """
        Convert to dictionary for serialization.
        
        Returns:
            Dictionary representation
        """
        return {
            'session_id': self.session_id,
            'total_length': self.total_length,
            'metadata': self.metadata.to_wire(),
            'object_key': self.object_key,
            'offset': self.offset,
            'registration_error': self.registration_error,
            'file_version_id': self.file_version_id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }
    
    @classmethod
    def from_dict(cls, data: dict) -> 'TransferSession':
        """
        Create from dictionary.
        
        Args:
            data: Dictionary with session data
            
        Returns:
            TransferSession instance
        """
        return cls(
            session_id=data['session_id'],
            total_length=int(data['total_length']),
            metadata=SessionMetadata.from_wire(data.get('metadata') or {}),
            object_key=data['object_key'],
            offset=int(data.get('offset', 0)),
            registration_error=data.get('registration_error'),
            file_version_id=data.get('file_version_id'),
            created_at=datetime.fromisoformat(data['created_at']) if data.get('created_at') else utcnow(),
            updated_at=datetime.fromisoformat(data['updated_at']) if data.get('updated_at') else utcnow(),
        )
    
    def to_json(self) -> str:
        return json.dumps(self.to_dict())
    
    @classmethod
    def from_json(cls, json_str: str) -> 'TransferSession':
        return cls.from_dict(json.loads(json_str))


@dataclass(frozen=True)
class TransferCompleted:
    """
    Completion event delivered once a session becomes terminal.
    
    Attributes:
        session_id: Terminal session
        metadata: Metadata declared at creation
        size: Final size in bytes
        object_key: Key of the landed bytes in object storage
    """
    session_id: str
    metadata: SessionMetadata
    size: int
    object_key: str
    
    @classmethod
    def from_session(cls, session: TransferSession) -> 'TransferCompleted':
        return cls(
            session_id=session.session_id,
            metadata=session.metadata,
            size=session.total_length,
            object_key=session.object_key,
        )
