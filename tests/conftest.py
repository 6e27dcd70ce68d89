"""Pytest fixtures for chunklift tests."""
import pytest

from chunklift.core.catalog import SQLiteCatalog
from chunklift.core.conversion import SQLiteMappingRepository
from chunklift.core.db import SQLiteDatabase
from chunklift.core.session import MemorySessionStore, SessionMetadata
from chunklift.core.storage import MemoryObjectStorage


@pytest.fixture
def metadata():
    """Metadata of an IFC model uploaded into a folder."""
    return SessionMetadata(
        filename="model.ifc",
        folder_id="folder-1",
        uploader_id="user-1",
    )


@pytest.fixture
def database():
    """Shared in-memory database."""
    db = SQLiteDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def catalog(database):
    """Catalog with one folder ('folder-1')."""
    catalog = SQLiteCatalog(database)
    catalog.create_folder("Models", "project-1", folder_id="folder-1")
    return catalog


@pytest.fixture
def mappings(database):
    return SQLiteMappingRepository(database)


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def storage():
    return MemoryObjectStorage()


@pytest.fixture
def make_file(tmp_path):
    """Factory writing a file of ``size`` bytes with a repeating pattern."""
    def _make(name: str, size: int):
        path = tmp_path / name
        pattern = bytes(range(256))
        path.write_bytes((pattern * (size // 256 + 1))[:size])
        return path
    return _make
