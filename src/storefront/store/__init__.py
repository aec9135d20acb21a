"""Document store factory.

Provides get_store() / set_store() to swap implementations:
- MemoryDocumentStore for development and testing
- SqlAlchemyDocumentStore for PostgreSQL or SQLite (STORE_ADAPTER=sql)
"""

from storefront.config import get_settings
from storefront.store.port import DocumentStore

_current_store: DocumentStore | None = None


def get_store() -> DocumentStore:
    """Return the current document store, creating it from settings on first use."""
    global _current_store
    if _current_store is None:
        settings = get_settings()
        if settings.store_adapter == "memory":
            from storefront.store.memory_adapter import MemoryDocumentStore

            _current_store = MemoryDocumentStore()
        elif settings.store_adapter == "sql":
            from storefront.store.sql_adapter import SqlAlchemyDocumentStore

            store = SqlAlchemyDocumentStore(settings.database_url)
            store.create_tables()
            _current_store = store
        else:
            raise ValueError(f"Unknown store adapter: {settings.store_adapter}")
    return _current_store


def set_store(store: DocumentStore) -> None:
    """Override the active document store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_store() -> None:
    """Reset to the default store."""
    global _current_store
    _current_store = None
