"""Transfer queue models."""
from .upload_models import (
    TransferStatus,
    TransferItem,
    BatchState,
    ServerAck,
    TransferEvent,
    SessionEvent,
    ProgressEvent,
    CompletedEvent,
    FailedEvent,
)

__all__ = [
    'TransferStatus',
    'TransferItem',
    'BatchState',
    'ServerAck',
    'TransferEvent',
    'SessionEvent',
    'ProgressEvent',
    'CompletedEvent',
    'FailedEvent',
]
