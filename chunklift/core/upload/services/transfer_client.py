"""
HTTP transfer client.

Speaks the endpoint's tus-shaped protocol over one shared aiohttp session
and turns error responses back into chunklift exceptions.
"""
import asyncio
from typing import Optional, Tuple
from urllib.parse import urljoin

import aiohttp

from ..models import ServerAck
from ...config import TransferConfig
from ...crypto import encode_metadata
from ...exceptions import (
    ERROR_KINDS,
    HTTP_STATUS,
    NetworkInterrupted,
    OffsetConflict,
    TransferError,
)
from ...logging import get_logger
from ...session.models import SessionMetadata


OFFSET_CONTENT_TYPE = 'application/offset+octet-stream'


class HttpTransferClient:
    """
    Client side of the chunked transfer protocol.

    One instance (and one HTTP session) is shared by every worker of a
    queue.

    Example:
        >>> async with HttpTransferClient(TransferConfig()) as client:
        ...     url, ack = await client.create(size, metadata)
        ...     ack = await client.send_chunk(url, 0, data)
    """

    def __init__(
        self,
        config: Optional[TransferConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize the client.

        Args:
            config: Transfer configuration (uses defaults if not provided)
            session: Optional shared HTTP session
        """
        self._config = config or TransferConfig.default()
        self._session = session
        self._owns_session = False
        self._logger = get_logger('chunklift.upload.client')

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    async def __aenter__(self) -> 'HttpTransferClient':
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(**self._config.get_session_kwargs())
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close session if we own it."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def create(self, size: int, metadata: SessionMetadata) -> Tuple[str, ServerAck]:
        headers = {
            'Upload-Length': str(size),
            'Upload-Metadata': encode_metadata(metadata.to_wire()),
        }
        session = await self._get_session()
        try:
            async with session.post(self.endpoint, headers=headers) as response:
                await self._raise_for_status(response)
                location = response.headers.get('Location')
                ack = self._ack(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._interrupted('POST', self.endpoint, e) from e

        if not location:
            raise TransferError("Endpoint did not return a session Location")
        session_url = urljoin(self.endpoint, location)
        self._logger.debug(f"Created session {session_url} for {metadata.filename}")
        return session_url, ack

    async def send_chunk(
        self,
        session_url: str,
        offset: int,
        data: bytes,
        checksum: Optional[str] = None
    ) -> ServerAck:
        headers = {
            'Upload-Offset': str(offset),
            'Content-Type': OFFSET_CONTENT_TYPE,
        }
        if checksum:
            headers['Upload-Checksum'] = checksum

        session = await self._get_session()
        try:
            async with session.patch(session_url, data=data, headers=headers) as response:
                await self._raise_for_status(response)
                return self._ack(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._interrupted('PATCH', session_url, e) from e

    async def query_offset(self, session_url: str) -> ServerAck:
        session = await self._get_session()
        try:
            async with session.head(session_url) as response:
                await self._raise_for_status(response)
                return self._ack(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._interrupted('HEAD', session_url, e) from e

    async def cancel(self, session_url: str) -> None:
        session = await self._get_session()
        try:
            async with session.delete(session_url) as response:
                await self._raise_for_status(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._interrupted('DELETE', session_url, e) from e

    def _interrupted(self, method: str, url: str, error: Exception) -> NetworkInterrupted:
        detail = str(error) or type(error).__name__
        self._logger.warning(f"{method} {url} interrupted: {detail}")
        return NetworkInterrupted(f"{method} {url} failed: {detail}")

    @staticmethod
    def _ack(response: aiohttp.ClientResponse) -> ServerAck:
        headers = response.headers
        try:
            offset = int(headers.get('Upload-Offset', '0'))
            length = headers.get('Upload-Length')
            total_length = int(length) if length is not None else None
        except ValueError as e:
            raise TransferError(f"Malformed offset headers from endpoint: {e}") from e
        return ServerAck(
            offset=offset,
            total_length=total_length,
            file_version_id=headers.get('Upload-File-Version-Id'),
            registration_error=headers.get('Upload-Registration-Error'),
        )

    async def _raise_for_status(self, response: aiohttp.ClientResponse) -> None:
        """Raise the chunklift exception matching an error response."""
        if response.status < 400:
            return

        kind = None
        message = f"HTTP {response.status} from {response.method} {response.url}"
        body = {}
        if response.method != 'HEAD':
            try:
                body = await response.json(content_type=None)
            except (aiohttp.ContentTypeError, ValueError):
                body = {}
            if isinstance(body, dict):
                kind = body.get('error')
                message = body.get('message') or message
            else:
                body = {}

        error_cls = ERROR_KINDS.get(kind) or HTTP_STATUS.get(response.status)
        if error_cls is OffsetConflict:
            expected = body.get('offset', response.headers.get('Upload-Offset'))
            raise OffsetConflict(
                message,
                expected=int(expected) if expected is not None else None
            )
        if error_cls is not None:
            raise error_cls(message)
        if response.status >= 500:
            raise NetworkInterrupted(message, error_code=response.status)
        raise TransferError(message, error_code=response.status)

