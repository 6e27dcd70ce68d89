"""
SQLite catalog store.

Holds folders, files, file versions and folder links. Registration of a
completed upload is a single transaction.
"""
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .models import (
    CatalogEntry,
    FileRecord,
    FileVersionRecord,
    UploadRegistration,
    is_root_folder,
)
from .protocols import CatalogStore
from ..db import SQLiteDatabase
from ..logging import get_logger
from ..session.models import utcnow


SCHEMA = '''
CREATE TABLE IF NOT EXISTS catalog_folder (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS catalog_file (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    ext TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS catalog_file_version (
    id TEXT PRIMARY KEY,
    file_id TEXT NOT NULL REFERENCES catalog_file(id),
    number INTEGER NOT NULL,
    size INTEGER NOT NULL,
    creator_id TEXT NOT NULL,
    object_key TEXT NOT NULL,
    upload_id TEXT UNIQUE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (file_id, number)
);

CREATE TABLE IF NOT EXISTS catalog_folder_file (
    folder_id TEXT NOT NULL REFERENCES catalog_folder(id),
    file_id TEXT NOT NULL REFERENCES catalog_file(id),
    PRIMARY KEY (folder_id, file_id)
);
'''

ENTRY_QUERY = '''
    SELECT f.id AS file_id, f.name, f.ext, f.created_at AS file_created_at,
           v.id AS version_id, v.number, v.size, v.creator_id, v.object_key,
           v.upload_id, v.created_at AS version_created_at,
           (SELECT ff.folder_id FROM catalog_folder_file ff
            WHERE ff.file_id = f.id LIMIT 1) AS folder_id
    FROM catalog_file_version v
    JOIN catalog_file f ON f.id = v.file_id
'''


class SQLiteCatalog(CatalogStore):
    """
    SQLite implementation of the catalog contract.

    Example:
        >>> catalog = SQLiteCatalog(":memory:")
        >>> entry = catalog.register_upload(UploadRegistration(...))
        >>> entry.file_version_id
    """

    def __init__(self, database: Union[SQLiteDatabase, str, Path]):
        if isinstance(database, SQLiteDatabase):
            self._db = database
            self._owns_db = False
        else:
            self._db = SQLiteDatabase(database)
            self._owns_db = True
        self._db.execute_script(SCHEMA)
        self._logger = get_logger('chunklift.catalog')

    @property
    def database(self) -> SQLiteDatabase:
        return self._db

    def create_folder(self, name: str, project_id: str, folder_id: Optional[str] = None) -> str:
        """Create a folder and return its id."""
        folder_id = folder_id or str(uuid.uuid4())
        with self._db.transaction() as conn:
            conn.execute(
                'INSERT INTO catalog_folder (id, project_id, name, created_at) VALUES (?, ?, ?, ?)',
                (folder_id, project_id, name, utcnow().isoformat())
            )
        return folder_id

    def register_upload(self, registration: UploadRegistration) -> CatalogEntry:
        """
        Insert file, file version and folder link in one transaction.

        If the upload was registered before, the existing entry is returned
        with ``created=False`` and nothing is inserted.

        Raises:
            sqlite3.Error: If any insert fails (the transaction is rolled back)
        """
        now = utcnow()
        file = FileRecord(
            id=str(uuid.uuid4()),
            name=registration.name,
            ext=registration.ext,
            created_at=now,
        )
        version = FileVersionRecord(
            id=str(uuid.uuid4()),
            file_id=file.id,
            number=1,
            size=registration.size,
            creator_id=registration.creator_id,
            object_key=registration.object_key,
            upload_id=registration.upload_id,
            created_at=now,
        )
        folder_id = None if is_root_folder(registration.folder_id) else registration.folder_id

        with self._db.transaction() as conn:
            existing = self._find_by_upload(conn, registration.upload_id)
            if existing is not None:
                self._logger.info(
                    f"Upload {registration.upload_id} already registered as {existing.file_version_id}"
                )
                return CatalogEntry(existing.file, existing.version, existing.folder_id, created=False)

            self._insert_file(conn, file)
            self._insert_file_version(conn, version)
            if folder_id is not None:
                self._link_folder(conn, folder_id, file.id)

        return CatalogEntry(file=file, version=version, folder_id=folder_id)

    def find_by_upload(self, upload_id: str) -> Optional[CatalogEntry]:
        with self._db.connection() as conn:
            return self._find_by_upload(conn, upload_id)

    def get_entry(self, file_version_id: str) -> Optional[CatalogEntry]:
        with self._db.connection() as conn:
            row = conn.execute(ENTRY_QUERY + ' WHERE v.id = ?', (file_version_id,)).fetchone()
        return self._row_to_entry(row) if row is not None else None

    def list_entries(self, folder_id: Optional[str] = None) -> List[CatalogEntry]:
        query = ENTRY_QUERY
        params: tuple = ()
        if folder_id is not None:
            if is_root_folder(folder_id):
                query += ' WHERE NOT EXISTS (SELECT 1 FROM catalog_folder_file ff WHERE ff.file_id = f.id)'
            else:
                query += ' WHERE EXISTS (SELECT 1 FROM catalog_folder_file ff WHERE ff.file_id = f.id AND ff.folder_id = ?)'
                params = (folder_id,)
        query += ' ORDER BY v.created_at'
        with self._db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def count_versions(self, upload_id: Optional[str] = None) -> int:
        with self._db.connection() as conn:
            if upload_id is None:
                row = conn.execute('SELECT COUNT(*) FROM catalog_file_version').fetchone()
            else:
                row = conn.execute(
                    'SELECT COUNT(*) FROM catalog_file_version WHERE upload_id = ?',
                    (upload_id,)
                ).fetchone()
        return row[0]

    def close(self) -> None:
        if self._owns_db:
            self._db.close()

    def _find_by_upload(self, conn: sqlite3.Connection, upload_id: str) -> Optional[CatalogEntry]:
        row = conn.execute(ENTRY_QUERY + ' WHERE v.upload_id = ?', (upload_id,)).fetchone()
        return self._row_to_entry(row) if row is not None else None

    @staticmethod
    def _insert_file(conn: sqlite3.Connection, file: FileRecord) -> None:
        conn.execute(
            'INSERT INTO catalog_file (id, name, ext, created_at, updated_at) VALUES (?, ?, ?, ?, ?)',
            (file.id, file.name, file.ext, file.created_at.isoformat(), file.created_at.isoformat())
        )

    @staticmethod
    def _insert_file_version(conn: sqlite3.Connection, version: FileVersionRecord) -> None:
        conn.execute('''
            INSERT INTO catalog_file_version (
                id, file_id, number, size, creator_id, object_key, upload_id,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            version.id,
            version.file_id,
            version.number,
            version.size,
            version.creator_id,
            version.object_key,
            version.upload_id,
            version.created_at.isoformat(),
            version.created_at.isoformat(),
        ))

    @staticmethod
    def _link_folder(conn: sqlite3.Connection, folder_id: str, file_id: str) -> None:
        conn.execute(
            'INSERT INTO catalog_folder_file (folder_id, file_id) VALUES (?, ?)',
            (folder_id, file_id)
        )

    @staticmethod
    def _row_to_entry(row) -> CatalogEntry:
        file = FileRecord(
            id=row['file_id'],
            name=row['name'],
            ext=row['ext'],
            created_at=datetime.fromisoformat(row['file_created_at']),
        )
        version = FileVersionRecord(
            id=row['version_id'],
            file_id=row['file_id'],
            number=row['number'],
            size=row['size'],
            creator_id=row['creator_id'],
            object_key=row['object_key'],
            upload_id=row['upload_id'],
            created_at=datetime.fromisoformat(row['version_created_at']),
        )
        return CatalogEntry(file=file, version=version, folder_id=row['folder_id'], created=False)
