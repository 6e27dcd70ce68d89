"""Tests for the command line interface."""
import pytest
from typer.testing import CliRunner

from chunklift.cli.main import app
from chunklift.core.catalog import SQLiteCatalog
from chunklift.core.conversion import ConversionStatus, SQLiteMappingRepository
from chunklift.core.session import SessionMetadata, SQLiteSessionStore, TransferSession

runner = CliRunner()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "chunklift.db"


@pytest.fixture
def unregistered(db_path):
    """A terminal session whose registration failed."""
    session = TransferSession(
        session_id="a" * 32,
        total_length=5,
        metadata=SessionMetadata(filename="plan.pdf", uploader_id="user-1"),
        object_key="uploads/" + "a" * 32,
        offset=5,
        registration_error="database is locked",
    )
    with SQLiteSessionStore(db_path) as store:
        store.save(session)
    return session


class TestCli:
    """Test suite for chunklift commands."""
    
    def test_mkdir(self, db_path):
        result = runner.invoke(app, ["mkdir", "Models", "--project", "p1", "--database", str(db_path)])
        
        assert result.exit_code == 0
        assert "Created folder" in result.output
    
    def test_reregister_lists_sessions(self, db_path, unregistered):
        result = runner.invoke(app, ["reregister", "--database", str(db_path)])
        
        assert result.exit_code == 0
        assert "plan.pdf" in result.output
    
    def test_reregister_session(self, db_path, unregistered):
        result = runner.invoke(app, ["reregister", unregistered.session_id, "--database", str(db_path)])
        
        assert result.exit_code == 0
        assert "Registered" in result.output
        catalog = SQLiteCatalog(db_path)
        try:
            assert catalog.count_versions(unregistered.session_id) == 1
        finally:
            catalog.close()
        with SQLiteSessionStore(db_path) as store:
            assert store.load(unregistered.session_id).is_registered
    
    def test_reregister_unknown_session(self, db_path):
        result = runner.invoke(app, ["reregister", "missing", "--database", str(db_path)])
        
        assert result.exit_code == 1
    
    def test_files(self, db_path, unregistered):
        runner.invoke(app, ["reregister", "--all", "--database", str(db_path)])
        
        result = runner.invoke(app, ["files", "--folder", "root", "--database", str(db_path)])
        
        assert result.exit_code == 0
        assert "plan.pdf" in result.output
    
    def test_mappings(self, db_path):
        repository = SQLiteMappingRepository(db_path)
        repository.create_pending("fv-1")
        repository.transition("fv-1", ConversionStatus.ERROR, error_message="timeout")
        repository.close()
        
        result = runner.invoke(app, ["mappings", "--status", "error", "--database", str(db_path)])
        
        assert result.exit_code == 0
        assert "fv-1" in result.output
    
    def test_mappings_empty(self, db_path):
        result = runner.invoke(app, ["mappings", "--database", str(db_path)])
        
        assert result.exit_code == 0
        assert "No conversion mappings" in result.output
    
    def test_mappings_bad_status(self, db_path):
        result = runner.invoke(app, ["mappings", "--status", "done", "--database", str(db_path)])
        
        assert result.exit_code == 1
