"""
Custom exceptions for chunklift.

Every failure the pipeline can observe maps to one class here. Transfer
errors carry a fixed HTTP status so the endpoint and the client agree on
the wire representation.
"""
from typing import Optional, Dict, Type


class ChunkLiftException(Exception):
    """Base exception for all chunklift errors."""
    
    http_status: int = 500
    
    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Human-readable error message
            error_code: Numeric error code (if available)
        """
        self.message = message
        self.error_code = error_code
        super().__init__(message)
    
    @property
    def kind(self) -> str:
        """Wire name of the error."""
        return type(self).__name__


class TransferError(ChunkLiftException):
    """Base class for errors raised by the chunked transfer protocol."""
    
    http_status = 400


class NetworkInterrupted(TransferError):
    """The connection dropped or timed out. Recoverable by resuming."""
    
    http_status = 0


class OffsetConflict(TransferError):
    """The caller's offset does not match the session's durable offset."""
    
    http_status = 409
    
    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None
    ) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Error message
            expected: Durable offset held by the server
            actual: Offset declared by the caller
        """
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class SessionClosed(TransferError):
    """The session already received all of its bytes."""
    
    http_status = 410


class SessionNotFound(TransferError):
    """No session exists for the given identifier."""
    
    http_status = 404


class ChunkOutOfRange(TransferError):
    """The chunk would write past the declared length."""
    
    http_status = 413


class UploadTooLarge(TransferError):
    """The declared length exceeds the configured maximum."""
    
    http_status = 413


class ChecksumMismatch(TransferError):
    """The chunk body does not match the declared checksum."""
    
    http_status = 460


class StorageUnavailable(ChunkLiftException):
    """The object-storage backend could not accept or serve the bytes."""
    
    http_status = 503


class RegistrationFailed(ChunkLiftException):
    """The catalog transaction for a completed transfer was rolled back."""
    
    http_status = 500
    
    def __init__(self, message: str, session_id: Optional[str] = None) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Error message
            session_id: Session whose completion could not be registered
        """
        self.session_id = session_id
        super().__init__(message)


class ConversionError(ChunkLiftException):
    """Base class for conversion bridge failures."""
    pass


class ConversionFailed(ConversionError):
    """The remote conversion service rejected or failed the job."""
    pass


class ConversionTimeout(ConversionError):
    """The remote job did not reach a terminal state in time."""
    pass


# Wire name -> exception class, used by the client to rebuild errors.
ERROR_KINDS: Dict[str, Type[ChunkLiftException]] = {
    cls.__name__: cls
    for cls in (
        OffsetConflict,
        SessionClosed,
        SessionNotFound,
        ChunkOutOfRange,
        UploadTooLarge,
        ChecksumMismatch,
        StorageUnavailable,
        RegistrationFailed,
    )
}

# Status -> exception class for responses without a JSON body (HEAD).
HTTP_STATUS: Dict[int, Type[ChunkLiftException]] = {
    409: OffsetConflict,
    410: SessionClosed,
    404: SessionNotFound,
    413: ChunkOutOfRange,
    460: ChecksumMismatch,
    503: StorageUnavailable,
}
