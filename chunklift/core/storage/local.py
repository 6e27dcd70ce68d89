"""
Local filesystem object storage.

Objects are plain files below a root directory. Writes go through aiofiles
so chunk appends never block the event loop.
"""
import asyncio
import os
from pathlib import Path
from typing import AsyncIterator, Union

import aiofiles
import aiofiles.os

from .protocols import ObjectStorage
from ..exceptions import StorageUnavailable
from ..logging import get_logger


class LocalObjectStorage(ObjectStorage):
    """
    Filesystem-backed object storage.
    
    Example:
        >>> storage = LocalObjectStorage("data/objects")
        >>> await storage.create_object("uploads/abc")
        >>> await storage.append_chunk("uploads/abc", 0, b"data")
    """
    
    def __init__(self, root: Union[str, Path], fsync: bool = True):
        """
        Initialize storage.
        
        Args:
            root: Directory holding all objects
            fsync: Flush appends to disk before acknowledging them
        """
        self._root = Path(root)
        self._fsync = fsync
        self._logger = get_logger('chunklift.storage.local')
    
    @property
    def root(self) -> Path:
        return self._root
    
    def path_for(self, key: str) -> Path:
        """Resolve an object key to a path inside the root."""
        parts = [p for p in key.split('/') if p]
        if not parts or any(p in ('.', '..') for p in parts):
            raise ValueError(f"Invalid object key: {key!r}")
        return self._root.joinpath(*parts)
    
    async def create_object(self, key: str) -> None:
        path = self.path_for(key)
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, 'wb'):
                pass
        except OSError as e:
            self._logger.error(f"Failed to create object {key}: {e}")
            raise StorageUnavailable(f"Cannot create object {key}: {e}") from e
        self._logger.debug(f"Created object {key}")
    
    async def append_chunk(self, key: str, offset: int, data: bytes) -> int:
        path = self.path_for(key)
        end = offset + len(data)
        try:
            async with aiofiles.open(path, 'r+b') as f:
                await f.seek(offset)
                await f.write(data)
                # Drop bytes left behind by an interrupted earlier write
                await f.truncate(end)
                await f.flush()
                if self._fsync:
                    loop = asyncio.get_running_loop()
                    await loop.run_in_executor(None, os.fsync, f.fileno())
        except FileNotFoundError as e:
            raise StorageUnavailable(f"Object {key} does not exist") from e
        except OSError as e:
            self._logger.error(f"Append to {key} at {offset} failed: {e}")
            raise StorageUnavailable(f"Cannot write to object {key}: {e}") from e
        return end
    
    async def delete_object(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageUnavailable(f"Cannot delete object {key}: {e}") from e
        self._logger.debug(f"Deleted object {key}")
        return True
    
    async def object_size(self, key: str) -> int:
        try:
            stat = await aiofiles.os.stat(self.path_for(key))
        except FileNotFoundError as e:
            raise StorageUnavailable(f"Object {key} does not exist") from e
        return stat.st_size
    
    async def iter_object(self, key: str, block_size: int = 1024 * 1024) -> AsyncIterator[bytes]:
        try:
            async with aiofiles.open(self.path_for(key), 'rb') as f:
                while True:
                    block = await f.read(block_size)
                    if not block:
                        break
                    yield block
        except FileNotFoundError as e:
            raise StorageUnavailable(f"Object {key} does not exist") from e
