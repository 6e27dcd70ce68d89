"""Transfer services module."""
from .file_service import FileValidator, AsyncFileReader
from .transfer_client import HttpTransferClient

__all__ = [
    'FileValidator',
    'AsyncFileReader',
    'HttpTransferClient',
]
