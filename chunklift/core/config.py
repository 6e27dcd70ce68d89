"""
Configuration module.

Provides configuration for the transfer client, the upload endpoint and the
conversion bridge. Every section can be built from defaults or from
CHUNKLIFT_* environment variables.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, Tuple
import os


ENV_PREFIX = 'CHUNKLIFT_'

MB = 1024 * 1024
GB = 1024 * MB


def _env(key: str, fallback: str) -> str:
    value = os.environ.get(ENV_PREFIX + key)
    return value if value else fallback


def _env_int(key: str, fallback: int) -> int:
    value = os.environ.get(ENV_PREFIX + key)
    if value:
        try:
            return int(value)
        except ValueError:
            pass
    return fallback


def _env_float(key: str, fallback: float) -> float:
    value = os.environ.get(ENV_PREFIX + key)
    if value:
        try:
            return float(value)
        except ValueError:
            pass
    return fallback


def _env_bool(key: str, fallback: bool) -> bool:
    value = os.environ.get(ENV_PREFIX + key)
    if value:
        lowered = value.strip().lower()
        if lowered in ('1', 'true', 'yes', 'on'):
            return True
        if lowered in ('0', 'false', 'no', 'off'):
            return False
    return fallback


@dataclass
class TimeoutConfig:
    """
    Timeout configuration for outbound HTTP requests.

    The total timeout bounds a single chunk send.
    """
    total: float = 120.0
    connect: float = 10.0
    sock_read: float = 60.0

    def to_aiohttp_timeout(self):
        """Convert to aiohttp ClientTimeout."""
        import aiohttp
        return aiohttp.ClientTimeout(
            total=self.total,
            connect=self.connect,
            sock_read=self.sock_read
        )


@dataclass
class RetryConfig:
    """
    Retry configuration for chunk sends.

    Delays are applied in order before each retry; once they are exhausted
    the transfer is marked failed.
    """
    delays: Tuple[float, ...] = (0.0, 1.0, 3.0, 5.0, 10.0)


@dataclass
class TransferConfig:
    """
    Client-side transfer configuration.

    Attributes:
        endpoint: Base URL of the upload endpoint (e.g. http://host/api/uploads)
        chunk_size: Bytes sent per SEND-CHUNK request
        max_parallel_uploads: Concurrency ceiling for active transfers
        speed_window: Trailing window (seconds) for throughput estimation
        uploader_id: Identity recorded as creator of registered files
        checksum_algorithm: Optional per-chunk checksum (sha1, sha256, md5)
    """
    endpoint: str = 'http://127.0.0.1:4000/api/uploads'
    chunk_size: int = 5 * MB
    max_parallel_uploads: int = 3
    speed_window: float = 5.0
    uploader_id: str = ''
    checksum_algorithm: Optional[str] = None
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    user_agent: str = 'chunklift/1.0.0'

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        if self.max_parallel_uploads <= 0:
            raise ValueError("max_parallel_uploads must be positive")

    @classmethod
    def default(cls) -> 'TransferConfig':
        """Create default configuration."""
        return cls()

    @classmethod
    def from_env(cls) -> 'TransferConfig':
        """Create configuration from CHUNKLIFT_* environment variables."""
        return cls(
            endpoint=_env('ENDPOINT', cls.endpoint),
            chunk_size=_env_int('CHUNK_SIZE', cls.chunk_size),
            max_parallel_uploads=_env_int('MAX_PARALLEL_UPLOADS', cls.max_parallel_uploads),
            uploader_id=_env('UPLOADER_ID', cls.uploader_id),
            checksum_algorithm=_env('CHECKSUM_ALGORITHM', '') or None,
            timeout=TimeoutConfig(total=_env_float('CHUNK_TIMEOUT', TimeoutConfig.total)),
        )

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp ClientSession."""
        return {
            'headers': {'User-Agent': self.user_agent, 'Tus-Resumable': '1.0.0'},
            'timeout': self.timeout.to_aiohttp_timeout(),
        }


@dataclass
class StorageConfig:
    """Object storage and database locations."""
    root: Path = Path('data/objects')
    database: Path = Path('data/chunklift.db')
    fsync: bool = True

    def __post_init__(self):
        if isinstance(self.root, str):
            self.root = Path(self.root)
        if isinstance(self.database, str):
            self.database = Path(self.database)

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        return cls(
            root=Path(_env('STORAGE_ROOT', str(cls.root))),
            database=Path(_env('DATABASE', str(cls.database))),
            fsync=_env_bool('STORAGE_FSYNC', cls.fsync),
        )


@dataclass
class ServerConfig:
    """
    Upload endpoint configuration.

    Attributes:
        host: Bind host
        port: Bind port
        base_path: URL path the protocol is served under
        max_upload_size: Largest accepted declared length
        chunk_size: Advertised chunk size
        max_chunk_size: Largest accepted request body
        storage_retries: Retries of a failed storage append before 503
        storage_retry_delay: Base delay of the exponential storage backoff
    """
    host: str = '127.0.0.1'
    port: int = 4000
    base_path: str = '/api/uploads'
    max_upload_size: int = 5 * GB
    chunk_size: int = 5 * MB
    max_chunk_size: int = 64 * MB
    storage_retries: int = 2
    storage_retry_delay: float = 0.1

    @classmethod
    def from_env(cls) -> 'ServerConfig':
        return cls(
            host=_env('BIND_HOST', cls.host),
            port=_env_int('BIND_PORT', cls.port),
            max_upload_size=_env_int('MAX_UPLOAD_SIZE', cls.max_upload_size),
            chunk_size=_env_int('CHUNK_SIZE', cls.chunk_size),
            max_chunk_size=_env_int('MAX_CHUNK_SIZE', cls.max_chunk_size),
        )


@dataclass
class ConversionConfig:
    """
    Conversion bridge configuration.

    The bridge is disabled unless ``enabled`` is set and a service URL is
    configured.
    """
    enabled: bool = False
    service_url: str = 'http://127.0.0.1:8080'
    api_token: str = ''
    project_id: str = ''
    poll_interval: float = 5.0
    poll_timeout: float = 600.0
    request_timeout: float = 30.0
    upload_timeout: float = 300.0
    extensions: Tuple[str, ...] = ('ifc', 'ifczip')

    def is_convertible(self, ext: str) -> bool:
        """Return True when files with this extension need conversion."""
        return ext.lower() in self.extensions

    @classmethod
    def from_env(cls) -> 'ConversionConfig':
        return cls(
            enabled=_env_bool('CONVERSION_ENABLED', cls.enabled),
            service_url=_env('CONVERSION_URL', cls.service_url),
            api_token=_env('CONVERSION_API_TOKEN', cls.api_token),
            project_id=_env('CONVERSION_PROJECT_ID', cls.project_id),
            poll_interval=_env_float('CONVERSION_POLL_INTERVAL', cls.poll_interval),
            poll_timeout=_env_float('CONVERSION_POLL_TIMEOUT', cls.poll_timeout),
            request_timeout=_env_float('CONVERSION_REQUEST_TIMEOUT', cls.request_timeout),
            upload_timeout=_env_float('CONVERSION_UPLOAD_TIMEOUT', cls.upload_timeout),
        )


@dataclass
class ChunkLiftConfig:
    """
    Complete server-side configuration.

    Centralizes every section used by the upload server.
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    log_level: int = 20  # logging.INFO

    @classmethod
    def default(cls) -> 'ChunkLiftConfig':
        """Create default configuration."""
        return cls()

    @classmethod
    def from_env(cls) -> 'ChunkLiftConfig':
        """Create configuration from CHUNKLIFT_* environment variables."""
        return cls(
            server=ServerConfig.from_env(),
            storage=StorageConfig.from_env(),
            conversion=ConversionConfig.from_env(),
            log_level=_env_int('LOG_LEVEL', 20),
        )
