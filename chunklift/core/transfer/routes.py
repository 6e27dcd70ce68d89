"""
HTTP routes for the chunked transfer endpoint.

Serves a tus 1.0.0 shaped protocol with aiohttp.web:

    OPTIONS /api/uploads        capabilities
    POST    /api/uploads        create a session
    PATCH   /api/uploads/{id}   send a chunk
    HEAD    /api/uploads/{id}   query the durable offset
    DELETE  /api/uploads/{id}   cancel
"""
from typing import Dict

from aiohttp import web

from .endpoint import ChunkedTransferEndpoint, ChunkResult
from ..crypto import SUPPORTED_ALGORITHMS, decode_metadata
from ..exceptions import ChunkLiftException, OffsetConflict, TransferError
from ..logging import get_logger
from ..session import SessionMetadata


TUS_RESUMABLE = '1.0.0'
TUS_EXTENSIONS = 'creation,termination,checksum'
OFFSET_CONTENT_TYPE = 'application/offset+octet-stream'

logger = get_logger('chunklift.transfer.routes')


def _header_value(text: str) -> str:
    """Squash a message into a single latin-1 safe header line."""
    return ' '.join(text.split()).encode('ascii', 'replace').decode('ascii')


def _int_header(request: web.Request, name: str) -> int:
    value = request.headers.get(name)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise TransferError(f"Missing or invalid {name} header: {value!r}")
    if number < 0:
        raise TransferError(f"Invalid {name} header: {value!r}")
    return number


def _result_headers(result: ChunkResult) -> Dict[str, str]:
    headers = {'Upload-Offset': str(result.offset)}
    if result.file_version_id:
        headers['Upload-File-Version-Id'] = result.file_version_id
    if result.registration_error:
        headers['Upload-Registration-Error'] = _header_value(result.registration_error)
    return headers


def error_response(error: ChunkLiftException) -> web.Response:
    """JSON error body with the status fixed for the error class."""
    body = {'error': error.kind, 'message': error.message}
    headers = {}
    if isinstance(error, OffsetConflict) and error.expected is not None:
        body['offset'] = error.expected
        headers['Upload-Offset'] = str(error.expected)
    return web.json_response(body, status=error.http_status or 500, headers=headers)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except ChunkLiftException as e:
        level = logger.error if e.http_status >= 500 else logger.info
        level(f"{request.method} {request.path} -> {e.http_status} {e.kind}: {e.message}")
        return error_response(e)


async def _add_tus_header(request: web.Request, response: web.StreamResponse) -> None:
    response.headers['Tus-Resumable'] = TUS_RESUMABLE


class TransferRoutes:
    """
    aiohttp handlers bound to one ``ChunkedTransferEndpoint``.

    Example:
        >>> app = web.Application(middlewares=[error_middleware])
        >>> TransferRoutes(endpoint).register(app)
    """

    def __init__(self, endpoint: ChunkedTransferEndpoint, base_path: str = '/api/uploads'):
        self._endpoint = endpoint
        self._base_path = '/' + base_path.strip('/')

    def register(self, app: web.Application) -> None:
        """Add the protocol routes and the Tus-Resumable response header."""
        base = self._base_path
        app.router.add_route('OPTIONS', base, self.options)
        app.router.add_post(base, self.create)
        app.router.add_route('PATCH', base + '/{session_id}', self.send_chunk)
        app.router.add_route('HEAD', base + '/{session_id}', self.query_offset)
        app.router.add_delete(base + '/{session_id}', self.cancel)
        app.on_response_prepare.append(_add_tus_header)

    def location(self, session_id: str) -> str:
        return f"{self._base_path}/{session_id}"

    async def options(self, request: web.Request) -> web.Response:
        config = self._endpoint.config
        return web.Response(status=204, headers={
            'Tus-Version': TUS_RESUMABLE,
            'Tus-Extension': TUS_EXTENSIONS,
            'Tus-Max-Size': str(config.max_upload_size),
            'Tus-Checksum-Algorithm': ','.join(SUPPORTED_ALGORITHMS),
        })

    async def create(self, request: web.Request) -> web.Response:
        total_length = _int_header(request, 'Upload-Length')
        metadata = SessionMetadata.from_wire(
            decode_metadata(request.headers.get('Upload-Metadata', ''))
        )
        if not metadata.filename:
            raise TransferError("Upload-Metadata must include a filename")

        session = await self._endpoint.create(total_length, metadata)
        headers = _result_headers(ChunkResult.from_session(session))
        headers['Location'] = self.location(session.session_id)
        return web.Response(status=201, headers=headers)

    async def send_chunk(self, request: web.Request) -> web.Response:
        content_type = request.headers.get('Content-Type', OFFSET_CONTENT_TYPE)
        if content_type != OFFSET_CONTENT_TYPE:
            return web.json_response(
                {'error': 'UnsupportedMediaType', 'message': f"Expected {OFFSET_CONTENT_TYPE}"},
                status=415
            )

        offset = _int_header(request, 'Upload-Offset')
        data = await request.read()
        result = await self._endpoint.send_chunk(
            request.match_info['session_id'],
            offset,
            data,
            checksum=request.headers.get('Upload-Checksum')
        )
        return web.Response(status=204, headers=_result_headers(result))

    async def query_offset(self, request: web.Request) -> web.Response:
        session = await self._endpoint.get_session(request.match_info['session_id'])
        headers = _result_headers(ChunkResult.from_session(session))
        headers['Upload-Length'] = str(session.total_length)
        headers['Cache-Control'] = 'no-store'
        return web.Response(status=200, headers=headers)

    async def cancel(self, request: web.Request) -> web.Response:
        await self._endpoint.cancel(request.match_info['session_id'])
        return web.Response(status=204)
