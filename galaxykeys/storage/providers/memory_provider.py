from typing import Any, Dict, List, Optional
from galaxykeys.storage.models import StoreEntry
from galaxykeys.storage.provider import StorageProvider, check_path

class InMemoryStorage(StorageProvider):
    name = "memory"

    def __init__(self):
        self.entries: Dict[str, bytes] = {}
        self.audit = []

    def exists(self, path: str) -> bool:
        return check_path(path) in self.entries

    def put(self, entry: StoreEntry):
        self.entries[check_path(entry.path)] = entry.to_json_bytes()

    def get(self, path: str) -> Optional[StoreEntry]:
        raw = self.entries.get(check_path(path))
        return StoreEntry.from_json_bytes(raw) if raw is not None else None

    def delete(self, path: str) -> bool:
        return self.entries.pop(check_path(path), None) is not None

    def list_paths(self, prefix: str = "") -> List[str]:
        return sorted(p for p in self.entries if p.startswith(prefix))

    # audit
    def log_event(self, event_type: str, payload: Dict[str, Any]):
        self.audit.append((event_type, payload))

    def snapshot(self) -> Dict[str, bytes]:
        return dict(self.entries)
