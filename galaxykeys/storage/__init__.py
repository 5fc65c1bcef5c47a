# galaxykeys/storage/__init__.py

from .models import StoreEntry
from .provider import StorageProvider
from .providers.file_provider import FileStorage
from .providers.memory_provider import InMemoryStorage
from .providers.sqlite_provider import SQLiteStorage
import os


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Factory resolver for selecting the store backend.

        - file (default): encrypted entries under the store home
        - sqlite
        - memory
    """
    config = config or {}
    provider = config.get("provider") or os.getenv("GALAXYKEYS_STORAGE_PROVIDER", "file")

    if provider == "memory":
        return InMemoryStorage()

    if provider == "file":
        home = config.get("home") or os.getenv("GALAXYKEYS_HOME", "~/.password-store")
        return FileStorage(home)

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("GALAXYKEYS_DB_PATH", "db/galaxykeys.db")
        return SQLiteStorage(db_path)

    raise ValueError(f"Unknown storage provider: {provider}")


__all__ = [
    "StoreEntry",
    "StorageProvider",
    "FileStorage",
    "InMemoryStorage",
    "SQLiteStorage",
    "load_storage_provider",
]
