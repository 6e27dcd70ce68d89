"""
chunklift - Resumable chunked uploads with catalog registration.

Usage:
    >>> from chunklift import UploadClient
    >>> 
    >>> async with UploadClient("http://127.0.0.1:4000/api/uploads") as client:
    ...     items = await client.upload(["model.ifc"], folder_id="folder-1")
    ...     print(items[0].status, items[0].file_version_id)
"""
import logging
from .client import UploadClient
from .server import UploadServer, create_app

# Configuration
from .core.config import (
    ChunkLiftConfig,
    TransferConfig,
    ServerConfig,
    StorageConfig,
    ConversionConfig,
    TimeoutConfig,
    RetryConfig,
)

# Client side
from .core.upload import (
    TransferQueueManager,
    TransferItem,
    TransferStatus,
    BatchState,
    HttpTransferClient,
)

# Server side
from .core.transfer import ChunkedTransferEndpoint
from .core.catalog import CompletionRegistrar, SQLiteCatalog
from .core.conversion import ConversionBridge, SQLiteMappingRepository

__version__ = '1.0.0'


def setup_logging(level=logging.INFO):
    """
    Configure logging for chunklift modules.
    
    Args:
        level: Logging level (default: logging.INFO)
    """
    loggers = [
        'chunklift',
        'chunklift.client',
        'chunklift.server',
        'chunklift.upload.queue',
        'chunklift.upload.coordinator',
        'chunklift.upload.client',
        'chunklift.upload.file',
        'chunklift.upload.events',
        'chunklift.transfer.endpoint',
        'chunklift.transfer.routes',
        'chunklift.storage.local',
        'chunklift.catalog',
        'chunklift.catalog.registrar',
        'chunklift.conversion.bridge',
        'chunklift.conversion.repository',
        'chunklift.conversion.speckle',
    ]
    
    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.propagate = True


__all__ = [
    'UploadClient',
    'UploadServer',
    'create_app',
    'ChunkLiftConfig',
    'TransferConfig',
    'ServerConfig',
    'StorageConfig',
    'ConversionConfig',
    'TimeoutConfig',
    'RetryConfig',
    'TransferQueueManager',
    'TransferItem',
    'TransferStatus',
    'BatchState',
    'HttpTransferClient',
    'ChunkedTransferEndpoint',
    'CompletionRegistrar',
    'SQLiteCatalog',
    'ConversionBridge',
    'SQLiteMappingRepository',
    'setup_logging',
]
