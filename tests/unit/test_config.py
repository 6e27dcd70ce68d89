"""Tests for configuration."""
import pytest

from chunklift.core.config import (
    MB,
    ChunkLiftConfig,
    ConversionConfig,
    ServerConfig,
    StorageConfig,
    TransferConfig,
)


class TestTransferConfig:
    """Test suite for TransferConfig."""
    
    def test_defaults(self):
        """Test default values."""
        config = TransferConfig()
        
        assert config.chunk_size == 5 * MB
        assert config.max_parallel_uploads == 3
        assert config.speed_window == 5.0
        assert config.retry.delays == (0.0, 1.0, 3.0, 5.0, 10.0)
        assert config.checksum_algorithm is None
    
    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            TransferConfig(chunk_size=0)
    
    def test_invalid_parallel_uploads(self):
        with pytest.raises(ValueError):
            TransferConfig(max_parallel_uploads=0)
    
    def test_from_env(self, monkeypatch):
        """Test reading CHUNKLIFT_* variables."""
        monkeypatch.setenv("CHUNKLIFT_ENDPOINT", "http://uploads.test/api/uploads")
        monkeypatch.setenv("CHUNKLIFT_CHUNK_SIZE", str(MB))
        monkeypatch.setenv("CHUNKLIFT_MAX_PARALLEL_UPLOADS", "5")
        monkeypatch.setenv("CHUNKLIFT_CHECKSUM_ALGORITHM", "sha256")
        
        config = TransferConfig.from_env()
        
        assert config.endpoint == "http://uploads.test/api/uploads"
        assert config.chunk_size == MB
        assert config.max_parallel_uploads == 5
        assert config.checksum_algorithm == "sha256"
    
    def test_from_env_ignores_garbage(self, monkeypatch):
        monkeypatch.setenv("CHUNKLIFT_MAX_PARALLEL_UPLOADS", "many")
        
        assert TransferConfig.from_env().max_parallel_uploads == 3
    
    def test_session_kwargs(self):
        """Test aiohttp session kwargs."""
        kwargs = TransferConfig().get_session_kwargs()
        
        assert kwargs['headers']['Tus-Resumable'] == '1.0.0'
        assert kwargs['timeout'].total == 120.0


class TestServerConfigs:
    """Tests for server-side sections."""
    
    def test_storage_paths_coerced(self):
        config = StorageConfig(root="objects", database="db.sqlite")
        
        assert config.root.name == "objects"
        assert config.database.name == "db.sqlite"
    
    def test_server_from_env(self, monkeypatch):
        monkeypatch.setenv("CHUNKLIFT_BIND_PORT", "8123")
        monkeypatch.setenv("CHUNKLIFT_MAX_UPLOAD_SIZE", "1000")
        
        config = ServerConfig.from_env()
        
        assert config.port == 8123
        assert config.max_upload_size == 1000
    
    def test_conversion_disabled_by_default(self):
        assert ConversionConfig().enabled is False
    
    def test_conversion_extensions(self):
        config = ConversionConfig()
        
        assert config.is_convertible("ifc")
        assert config.is_convertible("IFCZIP")
        assert not config.is_convertible("pdf")
    
    def test_conversion_from_env(self, monkeypatch):
        monkeypatch.setenv("CHUNKLIFT_CONVERSION_ENABLED", "yes")
        monkeypatch.setenv("CHUNKLIFT_CONVERSION_POLL_TIMEOUT", "30")
        
        config = ConversionConfig.from_env()
        
        assert config.enabled is True
        assert config.poll_timeout == 30.0
    
    def test_conversion_timeouts_from_env(self, monkeypatch):
        monkeypatch.setenv("CHUNKLIFT_CONVERSION_REQUEST_TIMEOUT", "10")
        monkeypatch.setenv("CHUNKLIFT_CONVERSION_UPLOAD_TIMEOUT", "900")
        
        config = ConversionConfig.from_env()
        
        assert config.request_timeout == 10.0
        assert config.upload_timeout == 900.0
        assert ConversionConfig().upload_timeout == 300.0
    
    def test_complete_config(self):
        config = ChunkLiftConfig.default()
        
        assert config.server.base_path == '/api/uploads'
        assert isinstance(config.storage, StorageConfig)
        assert isinstance(config.conversion, ConversionConfig)
