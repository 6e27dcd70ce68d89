"""Tests for conversion mappings and the conversion bridge."""
import asyncio
from datetime import timedelta

import pytest

from chunklift.core.conversion import (
    TIMEOUT_MESSAGE,
    ConversionBridge,
    ConversionSource,
    ConversionStatus,
    JobState,
    JobStatus,
)
from chunklift.core.exceptions import ConversionFailed
from chunklift.core.session.models import utcnow


SOURCE = ConversionSource("fv-1", "uploads/s1", "model.ifc")


class FakeConversionService:
    """
    Scriptable conversion service.
    
    ``statuses`` is consumed one entry per poll; the last entry repeats.
    """
    
    def __init__(self, statuses=None, create_error=None):
        self.statuses = list(statuses or [JobStatus(JobState.PENDING)])
        self.create_error = create_error
        self.created = []
        self.polls = 0
    
    async def create_job(self, source):
        if self.create_error is not None:
            raise self.create_error
        self.created.append(source)
        return f"model-{len(self.created)}"
    
    async def get_job_status(self, job_id):
        self.polls += 1
        status = self.statuses[0] if len(self.statuses) == 1 else self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return status
    
    async def close(self):
        pass


class TestMappingRepository:
    """Test suite for SQLiteMappingRepository."""
    
    def test_create_pending(self, mappings):
        mapping = mappings.create_pending("fv-1")
        
        assert mapping.status == ConversionStatus.PENDING
        assert mapping.remote_model_id == ""
    
    def test_create_pending_once(self, mappings):
        mappings.create_pending("fv-1")
        
        assert mappings.create_pending("fv-1") is None
    
    def test_forward_transitions(self, mappings):
        mappings.create_pending("fv-1")
        
        assert mappings.transition("fv-1", ConversionStatus.PROCESSING, remote_model_id="m1")
        assert mappings.transition("fv-1", ConversionStatus.READY, result_ref="obj-1")
        
        mapping = mappings.get("fv-1")
        assert mapping.status == ConversionStatus.READY
        assert mapping.remote_model_id == "m1"
        assert mapping.result_ref == "obj-1"
    
    def test_terminal_state_is_final(self, mappings):
        mappings.create_pending("fv-1")
        mappings.transition("fv-1", ConversionStatus.ERROR, error_message="boom")
        
        assert not mappings.transition("fv-1", ConversionStatus.PROCESSING)
        assert not mappings.transition("fv-1", ConversionStatus.READY)
        assert mappings.get("fv-1").status == ConversionStatus.ERROR
    
    def test_ready_requires_processing(self, mappings):
        mappings.create_pending("fv-1")
        
        assert not mappings.transition("fv-1", ConversionStatus.READY)
    
    def test_cannot_transition_into_pending(self, mappings):
        mappings.create_pending("fv-1")
        
        with pytest.raises(ValueError):
            mappings.transition("fv-1", ConversionStatus.PENDING)
    
    def test_list_by_status(self, mappings):
        mappings.create_pending("fv-1")
        mappings.create_pending("fv-2")
        mappings.transition("fv-2", ConversionStatus.PROCESSING, remote_model_id="m2")
        
        processing = mappings.list_mappings(ConversionStatus.PROCESSING)
        
        assert [m.file_version_id for m in processing] == ["fv-2"]
        assert len(mappings.list_mappings()) == 2


class TestConversionBridge:
    """Test suite for ConversionBridge."""
    
    @pytest.mark.asyncio
    async def test_job_becomes_ready(self, mappings):
        service = FakeConversionService([
            JobStatus(JobState.PENDING),
            JobStatus(JobState.READY, result_ref="obj-1"),
        ])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=5)
        
        mapping = await bridge.trigger(SOURCE)
        assert mapping.status == ConversionStatus.PROCESSING
        assert mapping.remote_model_id == "model-1"
        
        await bridge.join()
        
        mapping = mappings.get("fv-1")
        assert mapping.status == ConversionStatus.READY
        assert mapping.result_ref == "obj-1"
        assert service.polls == 2
    
    @pytest.mark.asyncio
    async def test_remote_error(self, mappings):
        service = FakeConversionService([JobStatus(JobState.ERROR, error="bad geometry")])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=5)
        
        await bridge.trigger(SOURCE)
        await bridge.join()
        
        mapping = mappings.get("fv-1")
        assert mapping.status == ConversionStatus.ERROR
        assert mapping.error_message == "bad geometry"
    
    @pytest.mark.asyncio
    async def test_create_failure_marks_error(self, mappings):
        service = FakeConversionService(create_error=ConversionFailed("service down"))
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=5)
        
        mapping = await bridge.trigger(SOURCE)
        
        assert mapping.status == ConversionStatus.ERROR
        assert mapping.error_message == "service down"
        assert bridge.pending_tasks == 0
    
    @pytest.mark.asyncio
    async def test_timeout(self, mappings):
        """Test a job that never finishes ends in error."""
        service = FakeConversionService([JobStatus(JobState.PENDING)])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=0.1)
        
        await bridge.trigger(SOURCE)
        await bridge.join()
        
        mapping = mappings.get("fv-1")
        assert mapping.status == ConversionStatus.ERROR
        assert mapping.error_message == TIMEOUT_MESSAGE
    
    @pytest.mark.asyncio
    async def test_poll_errors_keep_polling(self, mappings):
        service = FakeConversionService([
            ConversionFailed("flaky"),
            JobStatus(JobState.READY, result_ref="obj-1"),
        ])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=5)
        
        await bridge.trigger(SOURCE)
        await bridge.join()
        
        assert mappings.get("fv-1").status == ConversionStatus.READY
    
    @pytest.mark.asyncio
    async def test_trigger_once_per_file_version(self, mappings):
        service = FakeConversionService([JobStatus(JobState.READY, result_ref="obj-1")])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=5)
        
        await bridge.trigger(SOURCE)
        await bridge.trigger(SOURCE)
        await bridge.join()
        
        assert len(service.created) == 1
    
    @pytest.mark.asyncio
    async def test_schedule_is_detached(self, mappings):
        service = FakeConversionService([JobStatus(JobState.READY, result_ref="obj-1")])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=5)
        
        task = bridge.schedule(SOURCE)
        
        assert isinstance(task, asyncio.Task)
        await bridge.join()
        assert mappings.get("fv-1").status == ConversionStatus.READY
    
    @pytest.mark.asyncio
    async def test_resume_processing_mapping(self, mappings):
        """Test polling restarts for mappings left processing."""
        mappings.create_pending("fv-1")
        mappings.transition("fv-1", ConversionStatus.PROCESSING, remote_model_id="model-9")
        service = FakeConversionService([JobStatus(JobState.READY, result_ref="obj-9")])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=5)
        
        assert await bridge.resume() == 1
        await bridge.join()
        
        assert mappings.get("fv-1").status == ConversionStatus.READY
        assert service.created == []
    
    @pytest.mark.asyncio
    async def test_resume_past_deadline(self, mappings, database):
        mappings.create_pending("fv-1")
        mappings.transition("fv-1", ConversionStatus.PROCESSING, remote_model_id="model-9")
        stale = (utcnow() - timedelta(hours=1)).isoformat()
        with database.transaction() as conn:
            conn.execute(
                "UPDATE conversion_mapping SET updated_at = ? WHERE file_version_id = ?",
                (stale, "fv-1")
            )
        service = FakeConversionService([JobStatus(JobState.PENDING)])
        bridge = ConversionBridge(mappings, service, poll_interval=0.01, poll_timeout=60)
        
        await bridge.resume()
        await bridge.join()
        
        mapping = mappings.get("fv-1")
        assert mapping.status == ConversionStatus.ERROR
        assert mapping.error_message == TIMEOUT_MESSAGE
        assert service.polls == 1
    
    @pytest.mark.asyncio
    async def test_resume_ignores_pending(self, mappings):
        mappings.create_pending("fv-1")
        bridge = ConversionBridge(mappings, FakeConversionService(), poll_interval=0.01)
        
        assert await bridge.resume() == 0
    
    @pytest.mark.asyncio
    async def test_close_cancels_polling(self, mappings):
        bridge = ConversionBridge(
            mappings, FakeConversionService(), poll_interval=0.01, poll_timeout=60
        )
        await bridge.trigger(SOURCE)
        assert bridge.pending_tasks == 1
        
        await bridge.close()
        
        assert bridge.pending_tasks == 0
        assert mappings.get("fv-1").status == ConversionStatus.PROCESSING
