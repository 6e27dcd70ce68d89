"""Retry strategies using Strategy Pattern."""
from .retry_strategy import RetryStrategy, ScheduledBackoffStrategy, ExponentialBackoffStrategy

__all__ = [
    'RetryStrategy',
    'ScheduledBackoffStrategy',
    'ExponentialBackoffStrategy',
]
