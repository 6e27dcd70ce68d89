"""
Conversion module.

Tracks best-effort remote conversion of registered file-versions.
"""
from .models import (
    ConversionStatus,
    ConversionMapping,
    ConversionSource,
    JobState,
    JobStatus,
)
from .protocols import ConversionService
from .repository import SQLiteMappingRepository
from .bridge import ConversionBridge, TIMEOUT_MESSAGE
from .speckle import SpeckleConversionService

__all__ = [
    'ConversionStatus',
    'ConversionMapping',
    'ConversionSource',
    'JobState',
    'JobStatus',
    'ConversionService',
    'SQLiteMappingRepository',
    'ConversionBridge',
    'TIMEOUT_MESSAGE',
    'SpeckleConversionService',
]
