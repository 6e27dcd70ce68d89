"""Retry strategies using Strategy Pattern."""
import asyncio
from abc import ABC, abstractmethod
from typing import Sequence, Tuple, Type

from ..exceptions import NetworkInterrupted, StorageUnavailable


RECOVERABLE_ERRORS: Tuple[Type[Exception], ...] = (NetworkInterrupted, StorageUnavailable)


class RetryStrategy(ABC):
    """Abstract retry strategy."""
    
    @abstractmethod
    def should_retry(self, error: Exception, retry_count: int) -> bool:
        """Determines if the failed operation should be retried."""
        pass
    
    @abstractmethod
    def delay(self, retry_count: int) -> float:
        """Seconds to wait before retry number ``retry_count``."""
        pass
    
    async def wait_async(self, retry_count: int):
        """Waits before retry (async)."""
        seconds = self.delay(retry_count)
        if seconds > 0:
            await asyncio.sleep(seconds)


class ScheduledBackoffStrategy(RetryStrategy):
    """
    Retries recoverable errors following a fixed delay schedule.
    
    The default schedule (0, 1, 3, 5, 10 seconds) allows five retries
    with increasing waits before giving up.
    """
    
    def __init__(self, delays: Sequence[float] = (0.0, 1.0, 3.0, 5.0, 10.0)):
        self._delays = tuple(delays)
    
    @property
    def delays(self) -> Tuple[float, ...]:
        return self._delays
    
    def should_retry(self, error: Exception, retry_count: int) -> bool:
        """Retries network and storage failures until the schedule runs out."""
        return isinstance(error, RECOVERABLE_ERRORS) and retry_count < len(self._delays)
    
    def delay(self, retry_count: int) -> float:
        return self._delays[min(retry_count, len(self._delays) - 1)] if self._delays else 0.0


class ExponentialBackoffStrategy(RetryStrategy):
    """Exponential backoff retry strategy."""
    
    def __init__(self, max_retries: int = 4, base_delay: float = 0.25, max_delay: float = 16.0):
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
    
    def should_retry(self, error: Exception, retry_count: int) -> bool:
        """Retries recoverable errors up to ``max_retries`` times."""
        return isinstance(error, RECOVERABLE_ERRORS) and retry_count < self._max_retries
    
    def delay(self, retry_count: int) -> float:
        """Waits with exponential backoff."""
        return min(self._base_delay * (2 ** retry_count), self._max_delay)
