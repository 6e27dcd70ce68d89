"""
Object storage protocol.

The endpoint writes chunks through this interface; the conversion bridge
reads landed objects through it.
"""
from typing import Protocol, AsyncIterator, runtime_checkable


@runtime_checkable
class ObjectStorage(Protocol):
    """Chunk-addressable blob sink."""
    
    async def create_object(self, key: str) -> None:
        """Create an empty object (truncating any existing one)."""
        ...
    
    async def append_chunk(self, key: str, offset: int, data: bytes) -> int:
        """
        Write ``data`` at ``offset`` and drop anything past it.
        
        Must be durable before returning.
        
        Returns:
            New object size
            
        Raises:
            StorageUnavailable: If the write fails
        """
        ...
    
    async def delete_object(self, key: str) -> bool:
        """Delete an object. Returns False if it did not exist."""
        ...
    
    async def object_size(self, key: str) -> int:
        """Size of an object in bytes."""
        ...
    
    def iter_object(self, key: str, block_size: int = 1024 * 1024) -> AsyncIterator[bytes]:
        """Stream an object's content."""
        ...
