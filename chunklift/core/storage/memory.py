"""In-memory object storage for tests and ephemeral servers."""
from typing import AsyncIterator, Dict, List, Tuple

from .protocols import ObjectStorage
from ..exceptions import StorageUnavailable


class MemoryObjectStorage(ObjectStorage):
    """
    Keeps objects in ``bytearray`` buffers.
    
    Every append is recorded in ``appends`` as ``(key, offset, length)``.
    """
    
    def __init__(self):
        self._objects: Dict[str, bytearray] = {}
        self.appends: List[Tuple[str, int, int]] = []
    
    async def create_object(self, key: str) -> None:
        self._objects[key] = bytearray()
    
    async def append_chunk(self, key: str, offset: int, data: bytes) -> int:
        buffer = self._objects.get(key)
        if buffer is None:
            raise StorageUnavailable(f"Object {key} does not exist")
        if offset > len(buffer):
            raise StorageUnavailable(f"Offset {offset} is past the end of {key}")
        del buffer[offset:]
        buffer.extend(data)
        self.appends.append((key, offset, len(data)))
        return len(buffer)
    
    async def delete_object(self, key: str) -> bool:
        return self._objects.pop(key, None) is not None
    
    async def object_size(self, key: str) -> int:
        if key not in self._objects:
            raise StorageUnavailable(f"Object {key} does not exist")
        return len(self._objects[key])
    
    async def iter_object(self, key: str, block_size: int = 1024 * 1024) -> AsyncIterator[bytes]:
        if key not in self._objects:
            raise StorageUnavailable(f"Object {key} does not exist")
        data = bytes(self._objects[key])
        for start in range(0, len(data), block_size):
            yield data[start:start + block_size]
    
    def get(self, key: str) -> bytes:
        """Return an object's content."""
        return bytes(self._objects[key])
    
    def exists(self, key: str) -> bool:
        return key in self._objects
