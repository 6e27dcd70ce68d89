"""
Completion registrar.

Turns a terminal transfer session into exactly one catalog entry and hands
convertible files to the conversion bridge.
"""
import asyncio
from typing import Iterable, Optional

from .models import UploadRegistration
from .protocols import CatalogStore
from ..conversion import ConversionBridge, ConversionSource
from ..exceptions import RegistrationFailed
from ..logging import get_logger, format_size
from ..session.models import TransferCompleted


DEFAULT_CONVERTIBLE_EXTENSIONS = ('ifc', 'ifczip')

logger = get_logger('chunklift.catalog.registrar')


class CompletionRegistrar:
    """
    Registers completed transfers in the catalog.
    
    The catalog write is the only atomic step of the pipeline. It runs in a
    worker thread so the event loop keeps serving chunks meanwhile.
    
    Example:
        >>> registrar = CompletionRegistrar(catalog, bridge)
        >>> file_version_id = await registrar.register(event)
    """
    
    def __init__(
        self,
        catalog: CatalogStore,
        bridge: Optional[ConversionBridge] = None,
        convertible_extensions: Iterable[str] = DEFAULT_CONVERTIBLE_EXTENSIONS
    ):
        """
        Initialize the registrar.
        
        Args:
            catalog: Catalog store
            bridge: Conversion bridge (None disables conversion)
            convertible_extensions: Extensions handed to the bridge
        """
        self._catalog = catalog
        self._bridge = bridge
        self._extensions = frozenset(ext.lower().lstrip('.') for ext in convertible_extensions)
    
    @property
    def catalog(self) -> CatalogStore:
        return self._catalog
    
    def is_convertible(self, ext: str) -> bool:
        return ext.lower() in self._extensions
    
    async def register(self, event: TransferCompleted) -> str:
        """
        Register a completed transfer.
        
        A repeated delivery for the same session returns the file version
        registered the first time.
        
        Returns:
            File-version identifier
            
        Raises:
            RegistrationFailed: If the catalog transaction fails
        """
        metadata = event.metadata
        registration = UploadRegistration(
            upload_id=event.session_id,
            name=metadata.name,
            ext=metadata.ext,
            size=event.size,
            creator_id=metadata.uploader_id,
            object_key=event.object_key,
            folder_id=metadata.folder_id,
        )
        
        try:
            entry = await asyncio.to_thread(self._catalog.register_upload, registration)
        except Exception as e:
            logger.error(
                f"Registration of {metadata.filename} (session {event.session_id}) "
                f"rolled back: {e}"
            )
            raise RegistrationFailed(
                f"Could not register {metadata.filename}: {e}",
                session_id=event.session_id
            ) from e
        
        if not entry.created:
            return entry.file_version_id
        
        logger.info(
            f"Registered {metadata.filename} ({format_size(event.size)}) "
            f"as file version {entry.file_version_id}"
        )
        
        if self._bridge is not None and self.is_convertible(metadata.ext):
            self._bridge.schedule(ConversionSource(
                file_version_id=entry.file_version_id,
                object_key=event.object_key,
                filename=metadata.filename,
            ))
        
        return entry.file_version_id
