"""Tests for chunk checksums and metadata encoding."""
import base64
import hashlib

import pytest

from chunklift.core.crypto import (
    Base64Encoder,
    ChunkChecksum,
    decode_metadata,
    encode_metadata,
)
from chunklift.core.exceptions import ChecksumMismatch, TransferError


class TestChunkChecksum:
    """Test suite for ChunkChecksum."""
    
    def test_header_format(self):
        """Test header is '<algorithm> <base64 digest>'."""
        data = b"hello world"
        header = ChunkChecksum("sha1").header(data)
        
        expected = base64.b64encode(hashlib.sha1(data).digest()).decode()
        assert header == f"sha1 {expected}"
    
    @pytest.mark.parametrize("algorithm", ["sha1", "sha256", "md5"])
    def test_verify_accepts_matching_digest(self, algorithm):
        data = b"\x00\x01chunk" * 100
        header = ChunkChecksum(algorithm).header(data)
        
        ChunkChecksum.verify(header, data)
    
    def test_verify_rejects_other_bytes(self):
        header = ChunkChecksum("sha256").header(b"original")
        
        with pytest.raises(ChecksumMismatch):
            ChunkChecksum.verify(header, b"tampered")
    
    def test_algorithm_is_case_insensitive(self):
        assert ChunkChecksum("SHA256").algorithm == "sha256"
    
    def test_unsupported_algorithm(self):
        with pytest.raises(ValueError):
            ChunkChecksum("crc32")
    
    def test_parse_unsupported_algorithm(self):
        with pytest.raises(TransferError):
            ChunkChecksum.parse("crc32 AAAA")
    
    def test_parse_malformed_header(self):
        with pytest.raises(TransferError):
            ChunkChecksum.parse("sha1")


class TestBase64Encoder:
    """Test suite for Base64Encoder."""
    
    def test_encode_is_padded_standard(self):
        assert Base64Encoder.encode(b"Hello") == "SGVsbG8="
    
    def test_decode_without_padding(self):
        assert Base64Encoder.decode("SGVsbG8") == b"Hello"
    
    def test_decode_url_safe(self):
        assert Base64Encoder.decode("-_8") == b"\xfb\xff"
    

class TestMetadataEncoding:
    """Tests for the Upload-Metadata header."""
    
    def test_encode(self):
        header = encode_metadata({'filename': 'a.ifc', 'folderId': ''})
        
        assert header == 'filename YS5pZmM=, folderId'
    
    def test_decode(self):
        result = decode_metadata('filename YS5pZmM=, folderId')
        
        assert result == {'filename': 'a.ifc', 'folderId': ''}
    
    def test_unicode_filename(self):
        header = encode_metadata({'filename': 'plan étage 2.pdf'})
        
        assert decode_metadata(header)['filename'] == 'plan étage 2.pdf'
    
    def test_decode_empty_header(self):
        assert decode_metadata('') == {}
    
    def test_invalid_key(self):
        with pytest.raises(ValueError):
            encode_metadata({'file name': 'x'})
