"""
Local file services for the transfer queue.

``FileValidator`` checks paths before anything is queued; ``AsyncFileReader``
serves chunk reads for one transfer run from a single open handle.
"""
import os
from pathlib import Path
from typing import Optional, Tuple, Union

import aiofiles

from ...logging import get_logger

logger = get_logger('chunklift.upload.file')


class FileValidator:
    """Resolves a queued path and reports its size."""

    def validate(self, file_path: Union[str, Path]) -> Tuple[Path, int]:
        """
        Validate a file for transfer.

        Returns:
            Tuple of (Path, size in bytes); zero-length files are valid

        Raises:
            FileNotFoundError: If the path doesn't exist
            ValueError: If the path is not a readable regular file
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if not path.is_file():
            raise ValueError(f"Path is not a file: {path}")
        if not os.access(path, os.R_OK):
            raise ValueError(f"File is not readable: {path}")
        return path, path.stat().st_size

    def validate_size(self, file_size: int, max_size: Optional[int] = None) -> None:
        """Raise ValueError when ``file_size`` is above ``max_size``."""
        if max_size and file_size > max_size:
            raise ValueError(f"File size {file_size} exceeds maximum {max_size}")


class AsyncFileReader:
    """
    Chunk reader backed by aiofiles.

    The coordinator opens the item's file once per run and reads every
    chunk through the same handle. Reads of other paths open a handle just
    for that read.
    """

    def __init__(self):
        self._handle = None
        self._path: Optional[Path] = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    async def open_file(self, file_path: Path) -> None:
        if self._handle is not None:
            if self._path == file_path:
                return
            await self.close_file()
        self._handle = await aiofiles.open(file_path, 'rb')
        self._path = file_path

    async def close_file(self) -> None:
        handle, self._handle, self._path = self._handle, None, None
        if handle is not None:
            await handle.close()

    async def read_chunk(self, file_path: Path, start: int, end: int) -> Optional[bytes]:
        """
        Read bytes ``[start, end)`` of ``file_path``.

        Returns:
            The bytes read (possibly fewer at end of file), or None if the
            read failed or returned nothing
        """
        try:
            if self._handle is not None and self._path == file_path:
                data = await self._read(self._handle, start, end)
            else:
                async with aiofiles.open(file_path, 'rb') as handle:
                    data = await self._read(handle, start, end)
        except OSError as e:
            logger.error(f"Reading {file_path} [{start}, {end}) failed: {e}")
            return None
        return data or None

    @staticmethod
    async def _read(handle, start: int, end: int) -> bytes:
        await handle.seek(start)
        return await handle.read(end - start)
