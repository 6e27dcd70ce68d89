"""
Conversion bridge.

Hands registered file-versions to the remote conversion service and tracks
each job in a conversion mapping. Jobs run in detached tasks: nothing on
the upload path awaits them and their failures are only recorded on the
mapping.
"""
import asyncio
from datetime import timedelta
from typing import Optional, Set

from .models import ConversionMapping, ConversionSource, ConversionStatus, JobState
from .protocols import ConversionService
from .repository import SQLiteMappingRepository
from ..logging import get_logger
from ..session.models import utcnow


TIMEOUT_MESSAGE = 'conversion timed out'

logger = get_logger('chunklift.conversion.bridge')


class ConversionBridge:
    """
    Starts remote conversion jobs and polls them to a terminal state.

    Example:
        >>> bridge = ConversionBridge(repository, service, poll_interval=5, poll_timeout=600)
        >>> bridge.schedule(ConversionSource(file_version_id, object_key, "model.ifc"))
        >>> await bridge.close()
    """

    def __init__(
        self,
        repository: SQLiteMappingRepository,
        service: ConversionService,
        poll_interval: float = 5.0,
        poll_timeout: float = 600.0
    ):
        """
        Initialize the bridge.

        Args:
            repository: Mapping storage
            service: Remote conversion service
            poll_interval: Seconds between status polls
            poll_timeout: Seconds a job may stay non-terminal
        """
        self._repository = repository
        self._service = service
        self._poll_interval = poll_interval
        self._poll_timeout = poll_timeout
        self._tasks: Set[asyncio.Task] = set()

    @property
    def repository(self) -> SQLiteMappingRepository:
        return self._repository

    @property
    def pending_tasks(self) -> int:
        """Number of running trigger and poll tasks."""
        return len(self._tasks)

    def schedule(self, source: ConversionSource) -> asyncio.Task:
        """Run ``trigger`` in a detached task."""
        return self._track(self.trigger(source))

    async def trigger(self, source: ConversionSource) -> Optional[ConversionMapping]:
        """
        Create the mapping and the remote job, then start polling.

        A failure to create the job moves the mapping to ``error``.

        Returns:
            The mapping after the job was started (or failed to start)
        """
        fv_id = source.file_version_id
        if self._repository.create_pending(fv_id) is None:
            logger.info(f"Conversion for {fv_id} already exists, not triggering again")
            return self._repository.get(fv_id)

        try:
            job_id = await self._service.create_job(source)
        except Exception as e:
            logger.warning(f"Conversion job for {fv_id} could not be created: {e}")
            self._repository.transition(fv_id, ConversionStatus.ERROR, error_message=str(e))
            return self._repository.get(fv_id)

        if self._repository.transition(
            fv_id, ConversionStatus.PROCESSING, remote_model_id=job_id
        ):
            logger.info(f"Conversion of {fv_id} started as remote job {job_id}")
            self._track(self._poll(fv_id, job_id, self._poll_timeout))
        return self._repository.get(fv_id)

    async def resume(self) -> int:
        """
        Re-attach to every ``processing`` mapping after a restart.

        Each mapping gets one immediate status check and then the time left
        until ``updated_at + poll_timeout``. Remote jobs are never restarted.

        Returns:
            Number of mappings resumed
        """
        mappings = self._repository.list_mappings(ConversionStatus.PROCESSING)
        for mapping in mappings:
            self._track(self._resume_one(mapping))
        if mappings:
            logger.info(f"Resumed polling for {len(mappings)} conversion(s)")
        return len(mappings)

    async def join(self) -> None:
        """Wait until every tracked task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding tasks. Mapping state stays persisted."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(f"Cancelled {len(tasks)} conversion task(s)")

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _resume_one(self, mapping: ConversionMapping) -> None:
        fv_id = mapping.file_version_id
        job_id = mapping.remote_model_id
        if await self._check(fv_id, job_id):
            return
        deadline = mapping.updated_at + timedelta(seconds=self._poll_timeout)
        remaining = (deadline - utcnow()).total_seconds()
        if remaining <= 0:
            self._mark_timed_out(fv_id)
            return
        await self._poll(fv_id, job_id, remaining)

    async def _poll(self, fv_id: str, job_id: str, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._poll_until_terminal(fv_id, job_id), timeout=timeout)
        except asyncio.TimeoutError:
            self._mark_timed_out(fv_id)

    async def _poll_until_terminal(self, fv_id: str, job_id: str) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            if await self._check(fv_id, job_id):
                return

    async def _check(self, fv_id: str, job_id: str) -> bool:
        """
        Poll the remote job once.

        Returns:
            True if the mapping reached a terminal state
        """
        try:
            status = await self._service.get_job_status(job_id)
        except Exception as e:
            logger.warning(f"Status poll for {fv_id} (job {job_id}) failed: {e}")
            return False

        if status.state == JobState.READY:
            self._repository.transition(
                fv_id, ConversionStatus.READY, result_ref=status.result_ref or ''
            )
            logger.info(f"Conversion of {fv_id} ready: {status.result_ref}")
            return True
        if status.state == JobState.ERROR:
            message = status.error or 'conversion failed'
            self._repository.transition(fv_id, ConversionStatus.ERROR, error_message=message)
            logger.warning(f"Conversion of {fv_id} failed: {message}")
            return True
        return False

    def _mark_timed_out(self, fv_id: str) -> None:
        logger.warning(f"Conversion of {fv_id} did not finish within {self._poll_timeout}s")
        self._repository.transition(fv_id, ConversionStatus.ERROR, error_message=TIMEOUT_MESSAGE)
