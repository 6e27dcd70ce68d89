"""
Catalog data models.

A catalog entry is one file identity plus its single version record and
an optional folder link.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..session.models import utcnow


ROOT_FOLDER_IDS = ('', 'root')


def is_root_folder(folder_id: Optional[str]) -> bool:
    """Root-level files carry no folder link row."""
    return folder_id is None or folder_id in ROOT_FOLDER_IDS


@dataclass(frozen=True)
class FileRecord:
    """
    File identity.
    
    Attributes:
        id: File identifier
        name: File name without extension
        ext: Extension without dot
        created_at: Creation timestamp
    """
    id: str
    name: str
    ext: str
    created_at: datetime = field(default_factory=utcnow)
    
    @property
    def filename(self) -> str:
        return f"{self.name}.{self.ext}" if self.ext else self.name


@dataclass(frozen=True)
class FileVersionRecord:
    """
    One stored version of a file.
    
    Attributes:
        id: File-version identifier
        file_id: Owning file
        number: Sequence number, starting at 1
        size: Size in bytes
        creator_id: Uploader identity
        object_key: Key of the bytes in object storage
        upload_id: Transfer session that produced the version
        created_at: Creation timestamp
    """
    id: str
    file_id: str
    number: int
    size: int
    creator_id: str
    object_key: str
    upload_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class UploadRegistration:
    """Input for registering a completed transfer."""
    upload_id: str
    name: str
    ext: str
    size: int
    creator_id: str
    object_key: str
    folder_id: str = ''


@dataclass(frozen=True)
class CatalogEntry:
    """
    Result of a registration.
    
    ``created`` is False when the upload had already been registered and
    the existing entry was returned instead.
    """
    file: FileRecord
    version: FileVersionRecord
    folder_id: Optional[str] = None
    created: bool = True
    
    @property
    def file_version_id(self) -> str:
        return self.version.id
