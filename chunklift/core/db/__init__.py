"""SQLite persistence shared by the session store, catalog and mappings."""
from .sqlite import SQLiteDatabase

__all__ = ['SQLiteDatabase']
