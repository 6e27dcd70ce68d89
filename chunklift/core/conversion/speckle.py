"""
Speckle conversion service.

Creates a Speckle model for each file-version, uploads the landed bytes to
the model's file import endpoint, and reads the model's versions to find
out whether the import finished.
"""
import asyncio
from typing import Any, Dict, Optional

import aiohttp

from .models import ConversionSource, JobState, JobStatus
from .protocols import ConversionService
from ..exceptions import ConversionFailed
from ..logging import get_logger
from ..storage import ObjectStorage


CREATE_MODEL_MUTATION = '''
mutation CreateModel($input: CreateModelInput!) {
  modelMutations {
    create(input: $input) {
      id
      name
    }
  }
}
'''

MODEL_STATUS_QUERY = '''
query ModelImportStatus($projectId: String!, $modelId: String!) {
  project(id: $projectId) {
    model(id: $modelId) {
      versions(limit: 1) {
        items {
          id
          referencedObject
        }
      }
      pendingImportedVersions(limit: 1) {
        convertedStatus
        convertedMessage
      }
    }
  }
}
'''

# Speckle file upload convertedStatus values
CONVERTED_STATUS_ERROR = 3


class SpeckleConversionService(ConversionService):
    """
    Conversion service backed by a Speckle server.

    Example:
        >>> service = SpeckleConversionService(
        ...     "http://127.0.0.1:8080", token, project_id, storage
        ... )
        >>> job_id = await service.create_job(source)
        >>> status = await service.get_job_status(job_id)
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        project_id: str,
        storage: ObjectStorage,
        timeout: float = 30.0,
        upload_timeout: float = 300.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize the service.

        Args:
            base_url: Speckle server URL
            api_token: Bearer token
            project_id: Speckle project receiving the models
            storage: Object storage holding the landed bytes
            timeout: Timeout for GraphQL requests and for connecting, in seconds
            upload_timeout: Seconds to wait for Speckle to answer a file upload;
                the upload itself has no total limit
            session: Optional shared HTTP session
        """
        self._base_url = base_url.rstrip('/')
        self._token = api_token
        self._project_id = project_id
        self._storage = storage
        self._timeout = timeout
        self._upload_timeout = upload_timeout
        self._session = session
        self._owns_session = False
        self._logger = get_logger('chunklift.conversion.speckle')

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={'Authorization': f'Bearer {self._token}'}
            )
            self._owns_session = True
        return self._session

    @property
    def upload_client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=None,
            connect=self._timeout,
            sock_read=self._upload_timeout
        )

    async def close(self) -> None:
        """Close session if we own it."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def create_job(self, source: ConversionSource) -> str:
        """
        Create a model named after the file-version and upload its bytes.

        Raises:
            StorageUnavailable: If the landed object is missing
            ConversionFailed: If the model or the upload is rejected
        """
        size = await self._storage.object_size(source.object_key)
        model_id = await self._create_model(source.file_version_id)
        self._logger.info(
            f"Created model {model_id} for file version {source.file_version_id} ({size} bytes)"
        )
        await self._upload_source(source, model_id)
        return model_id

    async def get_job_status(self, job_id: str) -> JobStatus:
        data = await self._graphql(
            MODEL_STATUS_QUERY,
            {'projectId': self._project_id, 'modelId': job_id}
        )
        model = ((data.get('project') or {}).get('model')) or {}

        items = ((model.get('versions') or {}).get('items')) or []
        if items:
            return JobStatus(JobState.READY, result_ref=items[0].get('referencedObject'))

        pending = model.get('pendingImportedVersions') or []
        if pending and pending[0].get('convertedStatus') == CONVERTED_STATUS_ERROR:
            return JobStatus(
                JobState.ERROR,
                error=pending[0].get('convertedMessage') or 'remote import failed'
            )

        return JobStatus(JobState.PENDING)

    async def _create_model(self, name: str) -> str:
        data = await self._graphql(
            CREATE_MODEL_MUTATION,
            {'input': {'name': name, 'projectId': self._project_id}}
        )
        try:
            model_id = data['modelMutations']['create']['id']
        except (KeyError, TypeError) as e:
            raise ConversionFailed(f"Unexpected model creation response: {data}") from e
        if not model_id:
            raise ConversionFailed("Model creation returned no id")
        return model_id

    async def _upload_source(self, source: ConversionSource, model_id: str) -> None:
        """Stream the landed object to the model's file import endpoint."""
        url = f"{self._base_url}/api/file/{self._project_id}/{model_id}"
        form = aiohttp.FormData()
        form.add_field(
            'file',
            self._storage.iter_object(source.object_key),
            filename=source.filename,
            content_type='application/octet-stream'
        )

        session = await self._get_session()
        try:
            async with session.post(url, data=form, timeout=self.upload_client_timeout) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise ConversionFailed(
                        f"File upload to {url} failed: HTTP {response.status} {body[:200]}"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ConversionFailed(f"File upload to {url} failed: {e}") from e
        self._logger.debug(f"Uploaded {source.object_key} to model {model_id}")

    async def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a GraphQL request.

        Raises:
            ConversionFailed: On transport errors, HTTP errors or GraphQL errors
        """
        session = await self._get_session()
        try:
            async with session.post(
                f"{self._base_url}/graphql",
                json={'query': query, 'variables': variables},
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            ) as response:
                if response.status >= 400:
                    raise ConversionFailed(f"GraphQL request failed: HTTP {response.status}")
                result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ConversionFailed(f"GraphQL request failed: {e}") from e

        errors = result.get('errors') if isinstance(result, dict) else None
        if errors:
            raise ConversionFailed(f"GraphQL error: {errors[0].get('message', errors[0])}")
        return (result or {}).get('data') or {}
