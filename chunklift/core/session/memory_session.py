"""
In-memory session storage implementation.

Provides non-persistent session storage for testing and temporary use.
"""
from typing import Dict, List, Optional

from .protocols import SessionStore
from .models import TransferSession


class MemorySessionStore(SessionStore):
    """
    In-memory session storage.
    
    Sessions are lost when the object is destroyed. Stored copies are
    detached from the caller's instances so later mutation by the caller
    does not change stored state until ``save`` is called again.
    
    Example:
        >>> store = MemorySessionStore()
        >>> store.save(session)
        >>> loaded = store.load(session.session_id)
    """
    
    def __init__(self):
        """Initialize memory session storage."""
        self._data: Dict[str, dict] = {}
    
    def load(self, session_id: str) -> Optional[TransferSession]:
        data = self._data.get(session_id)
        return TransferSession.from_dict(data) if data is not None else None
    
    def save(self, session: TransferSession) -> None:
        self._data[session.session_id] = session.to_dict()
    
    def delete(self, session_id: str) -> bool:
        return self._data.pop(session_id, None) is not None
    
    def list_sessions(self, terminal: Optional[bool] = None) -> List[TransferSession]:
        sessions = [TransferSession.from_dict(d) for d in self._data.values()]
        if terminal is None:
            return sessions
        return [s for s in sessions if s.is_terminal == terminal]
    
    def close(self) -> None:
        """Close storage (no-op for memory storage)."""
        pass
    
    def __enter__(self) -> 'MemorySessionStore':
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
