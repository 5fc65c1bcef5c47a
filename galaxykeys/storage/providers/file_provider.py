from __future__ import annotations
from typing import Any, Dict, List, Optional
import json, os

from galaxykeys.constants import ENTRY_EXT, FILE_MODE
from galaxykeys.storage.models import StoreEntry
from galaxykeys.storage.provider import StorageProvider, check_path
from galaxykeys.utils import atomic_write, ensure_private_dir, now_ts

AUDIT_FILE = ".galaxykeys-audit.jsonl"


class FileStorage(StorageProvider):
    """
    `pass`-style tree: each entry is `<home>/<path>.enc`.

    Directories are created 0700 and entries 0600; writes go through a
    sibling temp file and os.replace().
    """

    name = "file"

    def __init__(self, home: str):
        self.home = os.path.abspath(os.path.expanduser(home))
        ensure_private_dir(self.home)

    def _file(self, path: str) -> str:
        return os.path.join(self.home, *check_path(path).split("/")) + ENTRY_EXT

    def exists(self, path: str) -> bool:
        return os.path.isfile(self._file(path))

    def put(self, entry: StoreEntry) -> None:
        target = self._file(entry.path)
        atomic_write(target, entry.to_json_bytes(), FILE_MODE)

    def get(self, path: str) -> Optional[StoreEntry]:
        try:
            with open(self._file(path), "rb") as f:
                return StoreEntry.from_json_bytes(f.read())
        except FileNotFoundError:
            return None

    def delete(self, path: str) -> bool:
        try:
            os.unlink(self._file(path))
            return True
        except FileNotFoundError:
            return False

    def list_paths(self, prefix: str = "") -> List[str]:
        found = []
        for dirpath, dirnames, filenames in os.walk(self.home):
            dirnames.sort()
            for name in sorted(filenames):
                if not name.endswith(ENTRY_EXT) or name.startswith("."):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self.home)
                path = rel[: -len(ENTRY_EXT)].replace(os.sep, "/")
                if path.startswith(prefix):
                    found.append(path)
        return found

    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        line = json.dumps({"ts": now_ts(), "event_type": event_type, "payload": payload},
                          separators=(",", ":"), sort_keys=True)
        fd = os.open(os.path.join(self.home, AUDIT_FILE), os.O_WRONLY | os.O_CREAT | os.O_APPEND, FILE_MODE)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(line + "\n")
