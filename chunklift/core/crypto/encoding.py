"""Encoding utilities."""
import base64
import binascii
from typing import Dict, Mapping


class Base64Encoder:
    """Standard Base64 encoder/decoder with a URL-safe fallback on decode."""
    
    @staticmethod
    def encode(data: bytes) -> str:
        """Encodes bytes to padded standard Base64."""
        return base64.b64encode(data).decode('ascii')

    @staticmethod
    def decode(data: str) -> bytes:
        """Decodes standard or URL-safe Base64 (with or without padding)."""
        padding = len(data) % 4
        if padding:
            data += '=' * (4 - padding)
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            try:
                return base64.urlsafe_b64decode(data)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"Invalid base64 value: {data!r}") from e


def encode_metadata(metadata: Mapping[str, str]) -> str:
    """
    Encode an ``Upload-Metadata`` header.
    
    Format: ``key base64value, key2 base64value2``. Empty values are sent as
    a bare key.
    
    Example:
        >>> encode_metadata({'filename': 'a.ifc', 'folderId': ''})
        'filename YS5pZmM=, folderId'
    """
    pairs = []
    for key, value in metadata.items():
        if ' ' in key or ',' in key:
            raise ValueError(f"Invalid metadata key: {key!r}")
        if value:
            pairs.append(f"{key} {Base64Encoder.encode(str(value).encode('utf-8'))}")
        else:
            pairs.append(key)
    return ', '.join(pairs)


def decode_metadata(header: str) -> Dict[str, str]:
    """
    Decode an ``Upload-Metadata`` header.
    
    Values that are not valid Base64 are kept verbatim.
    """
    result: Dict[str, str] = {}
    if not header:
        return result
    
    for pair in header.split(','):
        pair = pair.strip()
        if not pair:
            continue
        parts = pair.split(' ', 1)
        if len(parts) == 2:
            raw = parts[1].strip()
            try:
                result[parts[0]] = Base64Encoder.decode(raw).decode('utf-8')
            except (ValueError, UnicodeDecodeError):
                result[parts[0]] = raw
        else:
            result[parts[0]] = ''
    return result
