"""
Chunked transfer endpoint.

Server side of the resumable upload protocol.
"""
from .endpoint import ChunkedTransferEndpoint, ChunkResult, CompletionHandler
from .routes import TransferRoutes, error_middleware, error_response, TUS_RESUMABLE

__all__ = [
    'ChunkedTransferEndpoint',
    'ChunkResult',
    'CompletionHandler',
    'TransferRoutes',
    'error_middleware',
    'error_response',
    'TUS_RESUMABLE',
]
