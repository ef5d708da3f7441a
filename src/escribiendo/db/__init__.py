"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository modules for chats, journal, conjugation and books
"""

from escribiendo.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
