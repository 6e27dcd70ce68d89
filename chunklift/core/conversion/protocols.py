"""Conversion service protocol."""
from typing import Protocol, runtime_checkable

from .models import ConversionSource, JobStatus


@runtime_checkable
class ConversionService(Protocol):
    """Remote post-processing service."""
    
    async def create_job(self, source: ConversionSource) -> str:
        """
        Create a remote job for the landed bytes.
        
        Returns:
            Remote job identifier
            
        Raises:
            ConversionFailed: If the job cannot be created
        """
        ...
    
    async def get_job_status(self, job_id: str) -> JobStatus:
        """Query the remote job state."""
        ...
    
    async def close(self) -> None:
        ...
