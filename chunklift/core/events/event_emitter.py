"""Synchronous observer registry used by the transfer queue."""
from typing import Callable, Dict, List, Optional

from ..logging import get_logger


class EventEmitter:
    """
    Maps event names to listeners.

    Listeners run synchronously in registration order. A listener that
    raises is logged and the remaining listeners still run.
    """
    
    def __init__(self, logger_name: str = 'chunklift.events'):
        self._listeners: Dict[str, List[Callable]] = {}
        self._logger = get_logger(logger_name)
    
    def on(self, event: str, callback: Callable) -> 'EventEmitter':
        """Add ``callback`` for ``event``."""
        self._listeners.setdefault(event, []).append(callback)
        return self
    
    def off(self, event: str, callback: Optional[Callable] = None) -> 'EventEmitter':
        """Drop ``callback``, or every listener of ``event`` when omitted."""
        if callback is None:
            self._listeners.pop(event, None)
        elif event in self._listeners:
            remaining = [cb for cb in self._listeners[event] if cb != callback]
            if remaining:
                self._listeners[event] = remaining
            else:
                del self._listeners[event]
        return self
    
    def emit(self, event: str, *args, **kwargs) -> int:
        """Call the listeners of ``event``. Returns how many were called."""
        listeners = list(self._listeners.get(event, ()))
        for callback in listeners:
            try:
                callback(*args, **kwargs)
            except Exception as e:
                self._logger.error(f"Listener for '{event}' failed: {e}")
        return len(listeners)
    
    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))
