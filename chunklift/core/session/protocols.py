"""
Session storage protocols.

Defines the interface for transfer session storage implementations.
"""
from typing import Protocol, Optional, List, runtime_checkable
from .models import TransferSession


@runtime_checkable
class SessionStore(Protocol):
    """
    Protocol for transfer session storage.
    
    Implementations keep sessions keyed by session id. ``save`` must be
    durable before it returns: the endpoint acknowledges an offset only
    after saving it.
    """
    
    def load(self, session_id: str) -> Optional[TransferSession]:
        """
        Load a session.
        
        Returns:
            TransferSession if it exists, None otherwise
        """
        ...
    
    def save(self, session: TransferSession) -> None:
        """Insert or replace a session."""
        ...
    
    def delete(self, session_id: str) -> bool:
        """
        Delete a session.
        
        Returns:
            True if a session was removed
        """
        ...
    
    def list_sessions(self, terminal: Optional[bool] = None) -> List[TransferSession]:
        """List sessions, optionally filtered by terminal state."""
        ...
    
    def close(self) -> None:
        """Close storage connection and release resources."""
        ...
