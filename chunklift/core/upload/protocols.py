"""
Protocol definitions for the transfer queue.

Interfaces for the collaborators the coordinator is built from, so tests
can swap the HTTP client or the file reader.
"""
from typing import Protocol, List, Tuple, Optional
from pathlib import Path

from .models import ServerAck
from ..session.models import SessionMetadata


class ChunkingStrategy(Protocol):
    """
    Protocol for chunking strategies.
    
    Boundaries start at an arbitrary offset so a transfer can resume
    wherever the endpoint's durable offset is.
    """
    
    def calculate_chunks(self, file_size: int, start: int = 0) -> List[Tuple[int, int]]:
        """
        Calculate chunk boundaries.
        
        Returns:
            List of (start, end) tuples from ``start`` to ``file_size``
        """
        ...
    
    def next_chunk(self, file_size: int, offset: int) -> Tuple[int, int]:
        """Boundaries of the chunk that starts at ``offset``."""
        ...


class FileReaderProtocol(Protocol):
    """Protocol for file reading operations."""
    
    async def read_chunk(
        self, 
        file_path: Path, 
        start: int, 
        end: int
    ) -> Optional[bytes]:
        """
        Read a chunk from a file.
        
        Returns:
            Chunk data or None if reading failed
        """
        ...


class TransferClientProtocol(Protocol):
    """
    Protocol for the client side of the transfer protocol.
    
    Errors are raised as the chunklift exception matching the endpoint's
    response; transport failures raise ``NetworkInterrupted``.
    """
    
    async def create(self, size: int, metadata: SessionMetadata) -> Tuple[str, ServerAck]:
        """
        Open a session.
        
        Returns:
            Tuple of (session URL, acknowledgement)
        """
        ...
    
    async def send_chunk(
        self,
        session_url: str,
        offset: int,
        data: bytes,
        checksum: Optional[str] = None
    ) -> ServerAck:
        ...
    
    async def query_offset(self, session_url: str) -> ServerAck:
        ...
    
    async def cancel(self, session_url: str) -> None:
        ...
    
    async def close(self) -> None:
        ...
