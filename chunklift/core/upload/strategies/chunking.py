"""
Chunking strategies for transfers.

Implements Strategy Pattern for chunk boundaries.
"""
from abc import ABC, abstractmethod
from typing import List, Tuple


class BaseChunkingStrategy(ABC):
    """Abstract base class for chunking strategies."""
    
    @abstractmethod
    def calculate_chunks(self, file_size: int, start: int = 0) -> List[Tuple[int, int]]:
        """Calculate chunk boundaries from ``start`` to the end of the file."""
        pass
    
    def next_chunk(self, file_size: int, offset: int) -> Tuple[int, int]:
        """
        Boundaries of the chunk starting at ``offset``.
        
        Raises:
            ValueError: If ``offset`` is at or past the end of the file
        """
        chunks = self.calculate_chunks(file_size, offset)
        if not chunks:
            raise ValueError(f"No chunk starts at {offset} in a {file_size} byte file")
        return chunks[0]


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """
    Fixed-size chunking strategy.
    
    Every chunk is ``chunk_size`` bytes except the last one.
    
    Example:
        >>> FixedSizeChunkingStrategy(5).calculate_chunks(12)
        [(0, 5), (5, 10), (10, 12)]
    """
    
    DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024  # 5MB
    
    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize with chunk size.
        
        Args:
            chunk_size: Size of each chunk in bytes
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.chunk_size = chunk_size
    
    def calculate_chunks(self, file_size: int, start: int = 0) -> List[Tuple[int, int]]:
        """
        Calculate fixed-size chunk boundaries.
        
        Args:
            file_size: Total file size in bytes
            start: Offset of the first chunk
            
        Returns:
            List of (start, end) tuples
        """
        chunks = []
        position = start
        
        while position < file_size:
            end = min(position + self.chunk_size, file_size)
            chunks.append((position, end))
            position = end
        
        return chunks
    
    def next_chunk(self, file_size: int, offset: int) -> Tuple[int, int]:
        if offset >= file_size:
            raise ValueError(f"No chunk starts at {offset} in a {file_size} byte file")
        return offset, min(offset + self.chunk_size, file_size)
