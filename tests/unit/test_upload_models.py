"""Tests for transfer queue models."""
from pathlib import Path

from chunklift.core.upload import BatchState, TransferItem, TransferStatus


class TestTransferStatus:
    
    def test_active_statuses(self):
        active = {s for s in TransferStatus if s.is_active}
        
        assert active == {
            TransferStatus.QUEUED,
            TransferStatus.TRANSFERRING,
            TransferStatus.COMPLETING,
        }


class TestTransferItem:
    """Tests for TransferItem."""
    
    def test_defaults_from_path(self):
        item = TransferItem(path="models/Site.IFC", size=100)
        
        assert item.path == Path("models/Site.IFC")
        assert item.name == "Site.IFC"
        assert item.ext == "ifc"
        assert item.status == TransferStatus.QUEUED
        assert item.attempt == 0
    
    def test_unique_ids(self):
        assert TransferItem(path=Path("a"), size=1).id != TransferItem(path=Path("a"), size=1).id
    
    def test_percentage(self):
        item = TransferItem(path=Path("a.bin"), size=200, bytes_transferred=50)
        
        assert item.percentage == 25.0
    
    def test_percentage_empty_file(self):
        item = TransferItem(path=Path("a.bin"), size=0)
        assert item.percentage == 0.0
        
        item.status = TransferStatus.COMPLETE
        assert item.percentage == 100.0
    
    def test_metadata(self):
        item = TransferItem(path=Path("model.ifc"), size=10, folder_id="folder-1")
        metadata = item.metadata("user-1")
        
        assert metadata.filename == "model.ifc"
        assert metadata.ext == "ifc"
        assert metadata.folder_id == "folder-1"
        assert metadata.uploader_id == "user-1"


class TestBatchState:
    
    def test_percentage(self):
        assert BatchState(total_bytes=400, transferred_bytes=100).percentage == 25.0
        assert BatchState().percentage == 0.0
    
    def test_is_transferring(self):
        assert BatchState(active=1).is_transferring
        assert not BatchState(queued=3).is_transferring
