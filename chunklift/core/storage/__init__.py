"""Object storage backends for landed transfer bytes."""
from .protocols import ObjectStorage
from .local import LocalObjectStorage
from .memory import MemoryObjectStorage

__all__ = [
    'ObjectStorage',
    'LocalObjectStorage',
    'MemoryObjectStorage',
]
