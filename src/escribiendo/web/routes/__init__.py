"""API routers."""

from escribiendo.web.routes import books, chats, conjugation, health, journal, llm

__all__ = ["books", "chats", "conjugation", "health", "journal", "llm"]
