"""
SQLite session storage implementation.

Persists transfer sessions so an interrupted transfer can resume after a
server restart.
"""
import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .protocols import SessionStore
from .models import TransferSession, SessionMetadata
from ..db import SQLiteDatabase


SCHEMA = '''
CREATE TABLE IF NOT EXISTS transfer_session (
    session_id TEXT PRIMARY KEY,
    total_length INTEGER NOT NULL,
    durable_offset INTEGER NOT NULL DEFAULT 0,
    object_key TEXT NOT NULL,
    metadata TEXT NOT NULL,
    registration_error TEXT,
    file_version_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (durable_offset >= 0 AND durable_offset <= total_length)
);
'''


class SQLiteSessionStore(SessionStore):
    """
    SQLite-based session storage.
    
    Accepts either a database path or an existing ``SQLiteDatabase`` so the
    session table can live next to the catalog tables.
    
    Example:
        >>> store = SQLiteSessionStore("data/chunklift.db")
        >>> store.save(session)
        >>> loaded = store.load(session.session_id)
    """
    
    def __init__(self, database: Union[SQLiteDatabase, str, Path]):
        if isinstance(database, SQLiteDatabase):
            self._db = database
            self._owns_db = False
        else:
            self._db = SQLiteDatabase(database)
            self._owns_db = True
        self._db.execute_script(SCHEMA)
        self._migrate()
    
    @property
    def database(self) -> SQLiteDatabase:
        return self._db
    
    def load(self, session_id: str) -> Optional[TransferSession]:
        with self._db.connection() as conn:
            row = conn.execute(
                'SELECT * FROM transfer_session WHERE session_id = ?',
                (session_id,)
            ).fetchone()
        return self._row_to_session(row) if row is not None else None
    
    def save(self, session: TransferSession) -> None:
        with self._db.transaction() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO transfer_session (
                    session_id, total_length, durable_offset, object_key, metadata,
                    registration_error, file_version_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                session.session_id,
                session.total_length,
                session.offset,
                session.object_key,
                json.dumps(session.metadata.to_wire()),
                session.registration_error,
                session.file_version_id,
                session.created_at.isoformat(),
                session.updated_at.isoformat(),
            ))
    
    def delete(self, session_id: str) -> bool:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                'DELETE FROM transfer_session WHERE session_id = ?',
                (session_id,)
            )
            return cursor.rowcount > 0
    
    def list_sessions(self, terminal: Optional[bool] = None) -> List[TransferSession]:
        query = 'SELECT * FROM transfer_session'
        if terminal is True:
            query += ' WHERE durable_offset = total_length'
        elif terminal is False:
            query += ' WHERE durable_offset < total_length'
        query += ' ORDER BY created_at'
        with self._db.connection() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_session(row) for row in rows]
    
    def _migrate(self) -> None:
        """Add columns missing from databases created by older releases."""
        with self._db.connection() as conn:
            columns = {row['name'] for row in conn.execute('PRAGMA table_info(transfer_session)')}
            if 'file_version_id' not in columns:
                conn.execute('ALTER TABLE transfer_session ADD COLUMN file_version_id TEXT')
    
    def close(self) -> None:
        """Close database connection if this store opened it."""
        if self._owns_db:
            self._db.close()
    
    @staticmethod
    def _row_to_session(row) -> TransferSession:
        return TransferSession(
            session_id=row['session_id'],
            total_length=row['total_length'],
            metadata=SessionMetadata.from_wire(json.loads(row['metadata'])),
            object_key=row['object_key'],
            offset=row['durable_offset'],
            registration_error=row['registration_error'],
            file_version_id=row['file_version_id'],
            created_at=datetime.fromisoformat(row['created_at']),
            updated_at=datetime.fromisoformat(row['updated_at']),
        )
    
    def __enter__(self) -> 'SQLiteSessionStore':
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
