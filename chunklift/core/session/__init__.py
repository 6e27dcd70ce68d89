"""
Transfer session module.

Server-side state for in-flight transfers, with in-memory and SQLite
storage backends.
"""
from .protocols import SessionStore
from .models import TransferSession, SessionMetadata, TransferCompleted
from .sqlite_session import SQLiteSessionStore
from .memory_session import MemorySessionStore

__all__ = [
    'SessionStore',
    'TransferSession',
    'SessionMetadata',
    'TransferCompleted',
    'SQLiteSessionStore',
    'MemorySessionStore',
]
