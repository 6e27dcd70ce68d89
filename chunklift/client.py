"""
UploadClient - High-level async client for chunklift endpoints.

Example:
    >>> async with UploadClient("http://127.0.0.1:4000/api/uploads") as client:
    ...     items = await client.upload(["model.ifc", "plan.pdf"], folder_id="folder-1")
    ...     for item in items:
    ...         print(item.name, item.status, item.file_version_id)
"""
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .core.config import TransferConfig
from .core.logging import get_logger
from .core.upload import (
    BatchState,
    HttpTransferClient,
    TransferItem,
    TransferQueueManager,
)

logger = get_logger('chunklift.client')


class UploadClient:
    """
    Facade over the transfer client and the queue manager.
    
    Owns one HTTP session for all transfers and closes it on exit.
    """
    
    def __init__(
        self,
        endpoint: Optional[str] = None,
        config: Optional[TransferConfig] = None,
        **overrides
    ):
        """
        Initialize the client.
        
        Args:
            endpoint: Upload endpoint URL (overrides ``config.endpoint``)
            config: Transfer configuration (uses defaults if not provided)
            **overrides: Individual ``TransferConfig`` fields to override
        """
        config = config or TransferConfig.default()
        if endpoint:
            overrides['endpoint'] = endpoint
        self._config = replace(config, **overrides) if overrides else config
        self._transfer_client = HttpTransferClient(self._config)
        self._queue = TransferQueueManager(self._transfer_client, self._config)
    
    @property
    def config(self) -> TransferConfig:
        return self._config
    
    @property
    def queue(self) -> TransferQueueManager:
        """The underlying queue, for pause/resume/retry/remove."""
        return self._queue
    
    async def __aenter__(self) -> 'UploadClient':
        await self._transfer_client.__aenter__()
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
    
    def on(self, event: str, callback: Callable) -> 'UploadClient':
        """Register a queue observer (progress, status, complete, error)."""
        self._queue.on(event, callback)
        return self
    
    def enqueue(
        self,
        files: Iterable[Union[str, Path]],
        folder_id: str = ''
    ) -> List[TransferItem]:
        """Queue files without waiting for them."""
        return self._queue.enqueue(files, destination_folder=folder_id)
    
    async def upload(
        self,
        files: Iterable[Union[str, Path]],
        folder_id: str = ''
    ) -> List[TransferItem]:
        """
        Transfer files and wait until every queued item settles.
        
        Returns:
            The items, each ``complete``, ``failed`` or ``paused``
        """
        items = self.enqueue(files, folder_id)
        state: BatchState = await self._queue.wait()
        logger.info(
            f"Batch settled: {state.complete} complete, {state.failed} failed, "
            f"{state.paused} paused"
        )
        return items
    
    async def close(self) -> None:
        """Stop the queue and close the HTTP session."""
        await self._queue.close()
        await self._transfer_client.close()
