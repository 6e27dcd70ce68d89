"""
Upload server.

Wires the endpoint, registrar, catalog and conversion bridge into one
aiohttp application sharing a single SQLite database.
"""
from typing import Optional

from aiohttp import web

from .core.catalog import CompletionRegistrar, SQLiteCatalog
from .core.config import ChunkLiftConfig
from .core.conversion import (
    ConversionBridge,
    SQLiteMappingRepository,
    SpeckleConversionService,
)
from .core.db import SQLiteDatabase
from .core.logging import get_logger
from .core.session import SQLiteSessionStore
from .core.storage import LocalObjectStorage, ObjectStorage
from .core.transfer import ChunkedTransferEndpoint, TransferRoutes, error_middleware

logger = get_logger('chunklift.server')

# Application keys
DATABASE_KEY = web.AppKey('database', SQLiteDatabase)
ENDPOINT_KEY = web.AppKey('endpoint', ChunkedTransferEndpoint)
CATALOG_KEY = web.AppKey('catalog', SQLiteCatalog)
MAPPINGS_KEY = web.AppKey('mappings', SQLiteMappingRepository)
BRIDGE_KEY = web.AppKey('bridge', ConversionBridge)


class UploadServer:
    """
    Server-side components built from one configuration.
    
    Usable without HTTP (the CLI re-registers completions through it).
    """
    
    def __init__(
        self,
        config: Optional[ChunkLiftConfig] = None,
        database: Optional[SQLiteDatabase] = None,
        storage: Optional[ObjectStorage] = None
    ):
        self.config = config or ChunkLiftConfig.default()
        self.database = database or SQLiteDatabase(self.config.storage.database)
        self.storage = storage or LocalObjectStorage(
            self.config.storage.root, fsync=self.config.storage.fsync
        )
        self.sessions = SQLiteSessionStore(self.database)
        self.catalog = SQLiteCatalog(self.database)
        self.mappings = SQLiteMappingRepository(self.database)
        
        conversion = self.config.conversion
        self.conversion_service: Optional[SpeckleConversionService] = None
        self.bridge: Optional[ConversionBridge] = None
        if conversion.enabled and conversion.service_url:
            self.conversion_service = SpeckleConversionService(
                conversion.service_url,
                conversion.api_token,
                conversion.project_id,
                self.storage,
                timeout=conversion.request_timeout,
                upload_timeout=conversion.upload_timeout,
            )
            self.bridge = ConversionBridge(
                self.mappings,
                self.conversion_service,
                poll_interval=conversion.poll_interval,
                poll_timeout=conversion.poll_timeout,
            )
        
        self.registrar = CompletionRegistrar(
            self.catalog,
            self.bridge,
            convertible_extensions=conversion.extensions,
        )
        self.endpoint = ChunkedTransferEndpoint(
            self.sessions,
            self.storage,
            self.config.server,
            completion_handler=self.registrar.register,
        )
    
    async def start(self) -> None:
        """Re-attach to conversions left processing by a previous run."""
        if self.bridge is not None:
            await self.bridge.resume()
    
    async def close(self) -> None:
        if self.bridge is not None:
            await self.bridge.close()
        if self.conversion_service is not None:
            await self.conversion_service.close()
        self.database.close()


def create_app(
    config: Optional[ChunkLiftConfig] = None,
    server: Optional[UploadServer] = None
) -> web.Application:
    """
    Build the aiohttp application.
    
    Args:
        config: Configuration (ignored when ``server`` is given)
        server: Pre-built components, e.g. with in-memory storage for tests
    """
    server = server or UploadServer(config)
    app = web.Application(
        middlewares=[error_middleware],
        client_max_size=server.config.server.max_chunk_size,
    )
    TransferRoutes(server.endpoint, server.config.server.base_path).register(app)
    
    app[DATABASE_KEY] = server.database
    app[ENDPOINT_KEY] = server.endpoint
    app[CATALOG_KEY] = server.catalog
    app[MAPPINGS_KEY] = server.mappings
    if server.bridge is not None:
        app[BRIDGE_KEY] = server.bridge
    
    async def on_startup(app: web.Application) -> None:
        await server.start()
        logger.info(
            f"Serving uploads on {server.config.server.base_path} "
            f"(conversion {'enabled' if server.bridge else 'disabled'})"
        )
    
    async def on_cleanup(app: web.Application) -> None:
        await server.close()
    
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def run(config: Optional[ChunkLiftConfig] = None) -> None:
    """Run the server until interrupted."""
    config = config or ChunkLiftConfig.from_env()
    web.run_app(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        print=None,
    )
