"""
Conversion mapping repository.

Status changes are conditional updates, so a mapping can only move along
``pending -> processing -> ready|error`` and never leaves a terminal state.
"""
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .models import ALLOWED_PREDECESSORS, ConversionMapping, ConversionStatus
from ..db import SQLiteDatabase
from ..logging import get_logger
from ..session.models import utcnow


SCHEMA = '''
CREATE TABLE IF NOT EXISTS conversion_mapping (
    file_version_id TEXT PRIMARY KEY,
    remote_model_id TEXT NOT NULL DEFAULT '',
    result_ref TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_conversion_mapping_status ON conversion_mapping(status);
'''


class SQLiteMappingRepository:
    """SQLite storage for conversion mappings."""
    
    def __init__(self, database: Union[SQLiteDatabase, str, Path]):
        if isinstance(database, SQLiteDatabase):
            self._db = database
            self._owns_db = False
        else:
            self._db = SQLiteDatabase(database)
            self._owns_db = True
        self._db.execute_script(SCHEMA)
        self._logger = get_logger('chunklift.conversion.repository')
    
    def create_pending(self, file_version_id: str) -> Optional[ConversionMapping]:
        """
        Insert a pending mapping.
        
        Returns:
            The new mapping, or None if one already exists for the version
        """
        now = utcnow().isoformat()
        with self._db.transaction() as conn:
            cursor = conn.execute('''
                INSERT OR IGNORE INTO conversion_mapping
                    (file_version_id, status, created_at, updated_at)
                VALUES (?, ?, ?, ?)
            ''', (file_version_id, ConversionStatus.PENDING.value, now, now))
            if cursor.rowcount == 0:
                return None
        return self.get(file_version_id)
    
    def transition(
        self,
        file_version_id: str,
        status: ConversionStatus,
        remote_model_id: Optional[str] = None,
        result_ref: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> bool:
        """
        Move a mapping to ``status`` if its current status allows it.
        
        Returns:
            True if the mapping changed, False if the move was not allowed
        """
        predecessors = ALLOWED_PREDECESSORS.get(status)
        if not predecessors:
            raise ValueError(f"Cannot transition into {status.value}")
        
        assignments = ['status = ?', 'updated_at = ?']
        params: list = [status.value, utcnow().isoformat()]
        for column, value in (
            ('remote_model_id', remote_model_id),
            ('result_ref', result_ref),
            ('error_message', error_message),
        ):
            if value is not None:
                assignments.append(f'{column} = ?')
                params.append(value)
        
        placeholders = ', '.join('?' for _ in predecessors)
        params.append(file_version_id)
        params.extend(p.value for p in predecessors)
        
        with self._db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE conversion_mapping SET {', '.join(assignments)} "
                f"WHERE file_version_id = ? AND status IN ({placeholders})",
                params
            )
            changed = cursor.rowcount > 0
        
        if not changed:
            self._logger.warning(
                f"Ignored transition of {file_version_id} to {status.value}"
            )
        return changed
    
    def get(self, file_version_id: str) -> Optional[ConversionMapping]:
        with self._db.connection() as conn:
            row = conn.execute(
                'SELECT * FROM conversion_mapping WHERE file_version_id = ?',
                (file_version_id,)
            ).fetchone()
        return self._row_to_mapping(row) if row is not None else None
    
    def list_mappings(self, status: Optional[ConversionStatus] = None) -> List[ConversionMapping]:
        with self._db.connection() as conn:
            if status is None:
                rows = conn.execute(
                    'SELECT * FROM conversion_mapping ORDER BY created_at'
                ).fetchall()
            else:
                rows = conn.execute(
                    'SELECT * FROM conversion_mapping WHERE status = ? ORDER BY created_at',
                    (status.value,)
                ).fetchall()
        return [self._row_to_mapping(row) for row in rows]
    
    def close(self) -> None:
        if self._owns_db:
            self._db.close()
    
    @staticmethod
    def _row_to_mapping(row) -> ConversionMapping:
        return ConversionMapping(
            file_version_id=row['file_version_id'],
            status=ConversionStatus(row['status']),
            remote_model_id=row['remote_model_id'],
            result_ref=row['result_ref'],
            error_message=row['error_message'],
            created_at=datetime.fromisoformat(row['created_at']),
            updated_at=datetime.fromisoformat(row['updated_at']),
        )
