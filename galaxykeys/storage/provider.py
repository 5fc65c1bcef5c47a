# galaxykeys/storage/provider.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import StoreEntry


def check_path(path: str) -> str:
    """Reject store paths that could escape the store root."""
    parts = path.split("/")
    if not path or path.startswith("/") or any(p in ("", ".", "..") for p in parts):
        raise ValueError(f"invalid store path: {path!r}")
    return path


class StorageProvider(ABC):
    """
    Path-addressed store of encrypted entries.

    put() must publish atomically: after a crash a path holds either the
    previous entry or the new one, never a fragment.
    """

    name = "base"

    @abstractmethod
    def exists(self, path: str) -> bool: ...

    @abstractmethod
    def put(self, entry: StoreEntry) -> None: ...

    @abstractmethod
    def get(self, path: str) -> Optional[StoreEntry]: ...

    @abstractmethod
    def delete(self, path: str) -> bool: ...

    @abstractmethod
    def list_paths(self, prefix: str = "") -> List[str]: ...

    def count(self, prefix: str = "") -> int:
        return len(self.list_paths(prefix))

    @abstractmethod
    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None: ...

    def close(self) -> None:
        return
