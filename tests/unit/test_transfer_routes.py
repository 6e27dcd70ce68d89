"""Tests for the HTTP routes and the HTTP transfer client."""
from contextlib import asynccontextmanager

import pytest
from aiohttp.test_utils import TestClient, TestServer

from chunklift.client import UploadClient
from chunklift.core.config import ChunkLiftConfig, ServerConfig, TransferConfig
from chunklift.core.crypto import encode_metadata
from chunklift.core.db import SQLiteDatabase
from chunklift.core.exceptions import (
    NetworkInterrupted,
    OffsetConflict,
    SessionNotFound,
    UploadTooLarge,
)
from chunklift.core.session import SessionMetadata
from chunklift.core.storage import MemoryObjectStorage
from chunklift.core.upload import HttpTransferClient, TransferStatus
from chunklift.server import UploadServer, create_app

OFFSET_TYPE = 'application/offset+octet-stream'


def build_server() -> UploadServer:
    config = ChunkLiftConfig(server=ServerConfig(max_upload_size=1024 * 1024 * 64))
    server = UploadServer(config, database=SQLiteDatabase(':memory:'), storage=MemoryObjectStorage())
    server.catalog.create_folder("Models", "project-1", folder_id="folder-1")
    return server


@asynccontextmanager
async def serve(server: UploadServer):
    async with TestClient(TestServer(create_app(server=server))) as client:
        yield client


def create_headers(length: int, filename: str = "model.ifc", folder_id: str = "folder-1"):
    metadata = SessionMetadata(filename=filename, folder_id=folder_id, uploader_id="user-1")
    return {
        'Upload-Length': str(length),
        'Upload-Metadata': encode_metadata(metadata.to_wire()),
    }


class TestTransferRoutes:
    """Test suite for the protocol routes."""
    
    @pytest.mark.asyncio
    async def test_options(self):
        async with serve(build_server()) as client:
            response = await client.options('/api/uploads')
            
            assert response.status == 204
            assert response.headers['Tus-Resumable'] == '1.0.0'
            assert response.headers['Tus-Version'] == '1.0.0'
            assert 'checksum' in response.headers['Tus-Extension']
            assert response.headers['Tus-Max-Size'] == str(1024 * 1024 * 64)
    
    @pytest.mark.asyncio
    async def test_create(self):
        async with serve(build_server()) as client:
            response = await client.post('/api/uploads', headers=create_headers(10))
            
            assert response.status == 201
            assert response.headers['Location'].startswith('/api/uploads/')
            assert response.headers['Upload-Offset'] == '0'
            assert response.headers['Tus-Resumable'] == '1.0.0'
    
    @pytest.mark.asyncio
    async def test_create_without_length(self):
        async with serve(build_server()) as client:
            response = await client.post('/api/uploads', headers={'Upload-Metadata': ''})
            body = await response.json()
            
            assert response.status == 400
            assert body['error'] == 'TransferError'
    
    @pytest.mark.asyncio
    async def test_create_too_large(self):
        async with serve(build_server()) as client:
            response = await client.post(
                '/api/uploads', headers=create_headers(1024 * 1024 * 65)
            )
            body = await response.json()
            
            assert response.status == 413
            assert body['error'] == 'UploadTooLarge'
    
    @pytest.mark.asyncio
    async def test_chunks_and_completion(self):
        server = build_server()
        async with serve(server) as client:
            created = await client.post('/api/uploads', headers=create_headers(11))
            location = created.headers['Location']
            
            first = await client.patch(location, data=b"hello ", headers={
                'Upload-Offset': '0', 'Content-Type': OFFSET_TYPE
            })
            assert first.status == 204
            assert first.headers['Upload-Offset'] == '6'
            assert 'Upload-File-Version-Id' not in first.headers
            
            head = await client.head(location)
            assert head.status == 200
            assert head.headers['Upload-Offset'] == '6'
            assert head.headers['Upload-Length'] == '11'
            assert head.headers['Cache-Control'] == 'no-store'
            
            last = await client.patch(location, data=b"world", headers={
                'Upload-Offset': '6', 'Content-Type': OFFSET_TYPE
            })
            assert last.status == 204
            assert last.headers['Upload-Offset'] == '11'
            entry = server.catalog.get_entry(last.headers['Upload-File-Version-Id'])
            assert entry.version.size == 11
            assert entry.folder_id == "folder-1"
            assert server.storage.get(entry.version.object_key) == b"hello world"
    
    @pytest.mark.asyncio
    async def test_offset_conflict(self):
        async with serve(build_server()) as client:
            created = await client.post('/api/uploads', headers=create_headers(10))
            location = created.headers['Location']
            
            response = await client.patch(location, data=b"hello", headers={
                'Upload-Offset': '5', 'Content-Type': OFFSET_TYPE
            })
            body = await response.json()
            
            assert response.status == 409
            assert body['error'] == 'OffsetConflict'
            assert body['offset'] == 0
            assert response.headers['Upload-Offset'] == '0'
    
    @pytest.mark.asyncio
    async def test_patch_requires_offset_content_type(self):
        async with serve(build_server()) as client:
            created = await client.post('/api/uploads', headers=create_headers(10))
            
            response = await client.patch(created.headers['Location'], data=b"hello", headers={
                'Upload-Offset': '0', 'Content-Type': 'application/json'
            })
            
            assert response.status == 415
    
    @pytest.mark.asyncio
    async def test_unknown_session(self):
        async with serve(build_server()) as client:
            head = await client.head('/api/uploads/missing')
            patch = await client.patch('/api/uploads/missing', data=b"x", headers={
                'Upload-Offset': '0', 'Content-Type': OFFSET_TYPE
            })
            
            assert head.status == 404
            assert patch.status == 404
            assert (await patch.json())['error'] == 'SessionNotFound'
    
    @pytest.mark.asyncio
    async def test_delete(self):
        async with serve(build_server()) as client:
            created = await client.post('/api/uploads', headers=create_headers(10))
            location = created.headers['Location']
            
            assert (await client.delete(location)).status == 204
            assert (await client.head(location)).status == 404
            assert (await client.delete(location)).status == 204
    
    @pytest.mark.asyncio
    async def test_registered_session(self):
        """Test a registered session answers HEAD and refuses PATCH and DELETE."""
        async with serve(build_server()) as client:
            created = await client.post('/api/uploads', headers=create_headers(5))
            location = created.headers['Location']
            done = await client.patch(location, data=b"hello", headers={
                'Upload-Offset': '0', 'Content-Type': OFFSET_TYPE
            })

            again = await client.patch(location, data=b"", headers={
                'Upload-Offset': '5', 'Content-Type': OFFSET_TYPE
            })
            head = await client.head(location)
            delete = await client.delete(location)

            assert again.status == 410
            assert (await again.json())['error'] == 'SessionClosed'
            assert head.status == 200
            assert head.headers['Upload-Offset'] == '5'
            assert head.headers['Upload-File-Version-Id'] == done.headers['Upload-File-Version-Id']
            assert delete.status == 410

    @pytest.mark.asyncio
    async def test_registration_error_header(self):
        """Test a failed registration is reported on the final chunk."""
        async with serve(build_server()) as client:
            created = await client.post(
                '/api/uploads', headers=create_headers(5, folder_id="missing-folder")
            )
            location = created.headers['Location']
            
            response = await client.patch(location, data=b"hello", headers={
                'Upload-Offset': '0', 'Content-Type': OFFSET_TYPE
            })
            
            assert response.status == 204
            assert response.headers['Upload-Offset'] == '5'
            assert 'Upload-Registration-Error' in response.headers
            
            head = await client.head(location)
            assert 'Upload-Registration-Error' in head.headers


class TestHttpTransferClient:
    """Test suite for HttpTransferClient against a live app."""
    
    @pytest.mark.asyncio
    async def test_protocol_roundtrip(self):
        server = build_server()
        async with serve(server) as http:
            metadata = SessionMetadata("plan.pdf", folder_id="folder-1", uploader_id="user-1")
            config = TransferConfig(endpoint=str(http.make_url('/api/uploads')))
            async with HttpTransferClient(config) as client:
                url, ack = await client.create(10, metadata)
                assert url.startswith('http://')
                assert ack.offset == 0
                
                ack = await client.send_chunk(url, 0, b"hello")
                assert ack.offset == 5
                
                ack = await client.query_offset(url)
                assert (ack.offset, ack.total_length) == (5, 10)
                
                ack = await client.send_chunk(url, 5, b"world")
                assert ack.offset == 10
                assert ack.file_version_id is not None
            
            assert server.catalog.get_entry(ack.file_version_id).file.filename == "plan.pdf"
    
    @pytest.mark.asyncio
    async def test_errors_are_rebuilt(self):
        async with serve(build_server()) as http:
            endpoint = str(http.make_url('/api/uploads'))
            async with HttpTransferClient(TransferConfig(endpoint=endpoint)) as client:
                url, _ = await client.create(10, SessionMetadata("a.ifc"))
                
                with pytest.raises(OffsetConflict) as exc_info:
                    await client.send_chunk(url, 3, b"abc")
                assert exc_info.value.expected == 0
                
                with pytest.raises(SessionNotFound):
                    await client.query_offset(endpoint + '/missing')
                
                with pytest.raises(UploadTooLarge):
                    await client.create(1024 * 1024 * 65, SessionMetadata("a.ifc"))
                
                await client.cancel(url)
                with pytest.raises(SessionNotFound):
                    await client.query_offset(url)
    
    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self):
        config = TransferConfig(endpoint='http://127.0.0.1:1/api/uploads')
        async with HttpTransferClient(config) as client:
            with pytest.raises(NetworkInterrupted):
                await client.create(10, SessionMetadata("a.ifc"))


class TestUploadClient:
    """End-to-end transfers through UploadClient."""
    
    @pytest.mark.asyncio
    async def test_upload_files(self, make_file):
        server = build_server()
        model = make_file("model.ifc", 3 * 1024 * 1024 + 17)
        empty = make_file("empty.txt", 0)
        
        async with serve(server) as http:
            async with UploadClient(
                str(http.make_url('/api/uploads')),
                chunk_size=1024 * 1024,
                max_parallel_uploads=2,
            ) as client:
                items = await client.upload([model, empty], folder_id="folder-1")
            
            assert [item.status for item in items] == [TransferStatus.COMPLETE] * 2
            assert all(item.file_version_id for item in items)
            
            entries = {e.version.size: e for e in server.catalog.list_entries("folder-1")}
            assert sorted(entries) == [0, 3 * 1024 * 1024 + 17]
            
            landed = entries[3 * 1024 * 1024 + 17].version.object_key
            assert server.storage.get(landed) == model.read_bytes()
