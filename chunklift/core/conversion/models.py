"""Conversion mapping models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from ..session.models import utcnow


class ConversionStatus(str, Enum):
    """Lifecycle of a conversion mapping."""
    PENDING = 'pending'
    PROCESSING = 'processing'
    READY = 'ready'
    ERROR = 'error'

    @property
    def is_terminal(self) -> bool:
        return self in (ConversionStatus.READY, ConversionStatus.ERROR)


# Target status -> statuses it may be entered from
ALLOWED_PREDECESSORS: Dict[ConversionStatus, FrozenSet[ConversionStatus]] = {
    ConversionStatus.PROCESSING: frozenset({ConversionStatus.PENDING}),
    ConversionStatus.READY: frozenset({ConversionStatus.PROCESSING}),
    ConversionStatus.ERROR: frozenset({ConversionStatus.PENDING, ConversionStatus.PROCESSING}),
}


class JobState(str, Enum):
    """State reported by the remote conversion service."""
    PENDING = 'pending'
    READY = 'ready'
    ERROR = 'error'


@dataclass(frozen=True)
class JobStatus:
    """
    Remote job status.
    
    Attributes:
        state: Remote state
        result_ref: Reference to the converted result (when ready)
        error: Failure detail (when error)
    """
    state: JobState
    result_ref: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ConversionSource:
    """A registered file-version whose bytes should be converted."""
    file_version_id: str
    object_key: str
    filename: str


@dataclass
class ConversionMapping:
    """
    Tracks the remote conversion of one file-version.
    
    Attributes:
        file_version_id: File-version being converted
        status: Current status
        remote_model_id: Remote job identifier
        result_ref: Remote reference of the converted result
        error_message: Failure detail
        created_at: Creation timestamp
        updated_at: Last transition timestamp
    """
    file_version_id: str
    status: ConversionStatus = ConversionStatus.PENDING
    remote_model_id: str = ''
    result_ref: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            'fileVersionId': self.file_version_id,
            'status': self.status.value,
            'remoteModelId': self.remote_model_id,
            'resultRef': self.result_ref,
            'error': self.error_message,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }
