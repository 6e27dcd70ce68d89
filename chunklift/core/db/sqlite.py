"""
SQLite database wrapper.

One connection per database file, guarded by a lock so the same
connection can be used from the event loop and from worker threads.
"""
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union, Iterator


class SQLiteDatabase:
    """
    Thread-safe SQLite connection holder.
    
    Subclasses (or collaborators sharing an instance) register their
    schema through ``execute_script``.
    
    Example:
        >>> db = SQLiteDatabase(":memory:")
        >>> with db.transaction() as conn:
        ...     conn.execute("CREATE TABLE t (x INTEGER)")
    """
    
    MEMORY = ':memory:'
    
    def __init__(self, path: Union[str, Path] = MEMORY):
        """
        Initialize the database.
        
        Args:
            path: Database file path, or ':memory:'
        """
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        
        if str(path) == self.MEMORY:
            self._path = None
        else:
            self._path = Path(path)
            self._path.parent.mkdir(parents=True, exist_ok=True)
    
    @property
    def path(self) -> Optional[Path]:
        """Database file path (None for in-memory databases)."""
        return self._path
    
    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get thread-safe database connection."""
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(
                    str(self._path) if self._path else self.MEMORY,
                    check_same_thread=False,
                    isolation_level=None
                )
                self._conn.row_factory = sqlite3.Row
                self._conn.execute('PRAGMA foreign_keys = ON')
                if self._path:
                    self._conn.execute('PRAGMA journal_mode = WAL')
                    self._conn.execute('PRAGMA synchronous = FULL')
            yield self._conn
    
    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run statements in one atomic transaction.
        
        Commits on success, rolls back and re-raises on any exception.
        """
        with self.connection() as conn:
            conn.execute('BEGIN IMMEDIATE')
            try:
                yield conn
            except BaseException:
                conn.execute('ROLLBACK')
                raise
            else:
                conn.execute('COMMIT')
    
    def execute_script(self, script: str) -> None:
        with self.connection() as conn:
            conn.executescript(script)
    
    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
    
    def __enter__(self) -> 'SQLiteDatabase':
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
