"""Catalog store protocol."""
from typing import Protocol, Optional, List, runtime_checkable

from .models import CatalogEntry, UploadRegistration


@runtime_checkable
class CatalogStore(Protocol):
    """
    Relational catalog of files, versions and folder links.
    
    ``register_upload`` inserts the file, its version and the folder link
    as one transactional unit.
    """
    
    def register_upload(self, registration: UploadRegistration) -> CatalogEntry:
        ...
    
    def find_by_upload(self, upload_id: str) -> Optional[CatalogEntry]:
        ...
    
    def get_entry(self, file_version_id: str) -> Optional[CatalogEntry]:
        ...
    
    def list_entries(self, folder_id: Optional[str] = None) -> List[CatalogEntry]:
        ...
