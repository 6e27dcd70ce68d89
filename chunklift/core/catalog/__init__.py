"""
Catalog module.

Files, file versions and folder links, plus the registrar that writes them
for completed transfers.
"""
from .models import (
    FileRecord,
    FileVersionRecord,
    UploadRegistration,
    CatalogEntry,
    ROOT_FOLDER_IDS,
    is_root_folder,
)
from .protocols import CatalogStore
from .sqlite_catalog import SQLiteCatalog
from .registrar import CompletionRegistrar

__all__ = [
    'FileRecord',
    'FileVersionRecord',
    'UploadRegistration',
    'CatalogEntry',
    'ROOT_FOLDER_IDS',
    'is_root_folder',
    'CatalogStore',
    'SQLiteCatalog',
    'CompletionRegistrar',
]
