"""Checksum and encoding helpers for the transfer protocol."""
from .checksum import ChunkChecksum, SUPPORTED_ALGORITHMS
from .encoding import Base64Encoder, encode_metadata, decode_metadata

__all__ = [
    'ChunkChecksum',
    'SUPPORTED_ALGORITHMS',
    'Base64Encoder',
    'encode_metadata',
    'decode_metadata',
]
