"""
Per-chunk checksums.

Implements the ``Upload-Checksum`` header: ``<algorithm> <base64 digest>``.
"""
from typing import Tuple
from Crypto.Hash import MD5, SHA1, SHA256

from .encoding import Base64Encoder
from ..exceptions import ChecksumMismatch, TransferError


SUPPORTED_ALGORITHMS = {
    'sha1': SHA1,
    'sha256': SHA256,
    'md5': MD5,
}


class ChunkChecksum:
    """Computes, formats and verifies chunk digests."""
    
    def __init__(self, algorithm: str = 'sha1'):
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported checksum algorithm: {algorithm}")
        self.algorithm = algorithm
        self._hash_module = SUPPORTED_ALGORITHMS[algorithm]
    
    def digest(self, data: bytes) -> bytes:
        return self._hash_module.new(data).digest()
    
    def header(self, data: bytes) -> str:
        """Build the header value for a chunk."""
        return f"{self.algorithm} {Base64Encoder.encode(self.digest(data))}"
    
    @staticmethod
    def parse(header: str) -> Tuple['ChunkChecksum', bytes]:
        """
        Parse an ``Upload-Checksum`` header.
        
        Returns:
            Tuple of (checksum for the algorithm, expected digest)
            
        Raises:
            TransferError: If the header is malformed or names an
                unsupported algorithm
        """
        parts = header.strip().split(' ', 1)
        if len(parts) != 2:
            raise TransferError(f"Malformed Upload-Checksum header: {header!r}")
        try:
            checksum = ChunkChecksum(parts[0])
            expected = Base64Encoder.decode(parts[1].strip())
        except ValueError as e:
            raise TransferError(str(e)) from e
        return checksum, expected
    
    @classmethod
    def verify(cls, header: str, data: bytes) -> None:
        """
        Verify a chunk against its header.
        
        Raises:
            ChecksumMismatch: If the digest differs
        """
        checksum, expected = cls.parse(header)
        actual = checksum.digest(data)
        if actual != expected:
            raise ChecksumMismatch(
                f"{checksum.algorithm} checksum mismatch for {len(data)} byte chunk"
            )
