"""
Client-side transfer module.

Queues files, runs them through the resumable transfer protocol under a
concurrency ceiling and reports aggregate progress.
"""
from .queue import TransferQueueManager
from .coordinator import TransferCoordinator
from .throughput import ThroughputMeter
from .models import (
    TransferStatus,
    TransferItem,
    BatchState,
    ServerAck,
    SessionEvent,
    ProgressEvent,
    CompletedEvent,
    FailedEvent,
)
from .protocols import ChunkingStrategy, FileReaderProtocol, TransferClientProtocol
from .services import FileValidator, AsyncFileReader, HttpTransferClient
from .strategies import FixedSizeChunkingStrategy

__all__ = [
    # Main classes
    'TransferQueueManager',
    'TransferCoordinator',
    'ThroughputMeter',
    'HttpTransferClient',
    
    # Models
    'TransferStatus',
    'TransferItem',
    'BatchState',
    'ServerAck',
    'SessionEvent',
    'ProgressEvent',
    'CompletedEvent',
    'FailedEvent',
    
    # Protocols
    'ChunkingStrategy',
    'FileReaderProtocol',
    'TransferClientProtocol',
    
    # Services and strategies
    'FileValidator',
    'AsyncFileReader',
    'FixedSizeChunkingStrategy',
]
