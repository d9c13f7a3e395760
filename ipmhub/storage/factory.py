from ..config import settings
from .provider import StoreProvider, StoreError
from .memory_provider import MemoryStoreProvider


def get_store_provider(backend: str | None = None) -> StoreProvider:
    backend = (backend or settings.store_backend or "sql").lower()
    if backend == "memory":
        return MemoryStoreProvider()
    if backend == "sql":
        from .sql_provider import SqlStoreProvider
        return SqlStoreProvider()
    raise StoreError(f"Unsupported store backend: {backend}")
