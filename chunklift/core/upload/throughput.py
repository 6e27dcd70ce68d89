"""Trailing-window throughput estimation."""
import time
from collections import deque
from typing import Callable, Deque, Optional, Tuple


class ThroughputMeter:
    """
    Estimates transfer speed from cumulative byte samples.
    
    Samples older than ``window`` seconds are dropped. The speed is the
    growth between the oldest and the newest sample in the window.
    
    Example:
        >>> meter = ThroughputMeter(window=5.0)
        >>> meter.record(0, at=0.0)
        >>> meter.record(10 * 1024 * 1024, at=2.0)
        >>> meter.speed(now=2.0)
        5242880.0
    """
    
    def __init__(self, window: float = 5.0, clock: Callable[[], float] = time.monotonic):
        if window <= 0:
            raise ValueError("Window must be positive")
        self._window = window
        self._clock = clock
        self._samples: Deque[Tuple[float, int]] = deque()
    
    @property
    def window(self) -> float:
        return self._window
    
    @property
    def sample_count(self) -> int:
        return len(self._samples)
    
    def record(self, total_bytes: int, at: Optional[float] = None) -> None:
        """Record the cumulative transferred byte count."""
        now = self._clock() if at is None else at
        self._samples.append((now, total_bytes))
        self._prune(now)
    
    def speed(self, now: Optional[float] = None) -> float:
        """Bytes per second over the window (0.0 with fewer than two samples)."""
        self._prune(self._clock() if now is None else now)
        if len(self._samples) < 2:
            return 0.0
        oldest_time, oldest_bytes = self._samples[0]
        newest_time, newest_bytes = self._samples[-1]
        elapsed = newest_time - oldest_time
        if elapsed <= 0:
            return 0.0
        return max(newest_bytes - oldest_bytes, 0) / elapsed
    
    def eta(self, remaining_bytes: int, now: Optional[float] = None) -> Optional[float]:
        """
        Seconds until ``remaining_bytes`` are sent at the current speed.
        
        Returns:
            None when the speed is unknown or zero
        """
        speed = self.speed(now)
        if speed <= 0:
            return None
        return max(remaining_bytes, 0) / speed
    
    def reset(self) -> None:
        self._samples.clear()
    
    def _prune(self, now: float) -> None:
        while self._samples and now - self._samples[0][0] >= self._window:
            self._samples.popleft()
