from __future__ import annotations
from typing import Optional, Dict, Any, List
import json, sqlite3, os
from galaxykeys.storage.provider import StorageProvider, check_path
from galaxykeys.storage.models import StoreEntry
from galaxykeys.utils import ensure_private_dir, now_ts


class SQLiteStorage(StorageProvider):
    name = "sqlite"

    def __init__(self, path="db/galaxykeys.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        ensure_private_dir(dir_path)
        self.db = sqlite3.connect(path)

        self._init()
        if path != ":memory:":
            os.chmod(path, 0o600)

    def _init(self) -> None:
        c = self.db.cursor()

        c.execute("""CREATE TABLE IF NOT EXISTS store_entries(
            path TEXT PRIMARY KEY,
            sealed TEXT NOT NULL,
            recipient TEXT NOT NULL,
            created_at TEXT NOT NULL
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS audit(
            ts TEXT,
            event_type TEXT,
            payload TEXT
        )""")

        self.db.commit()

    def exists(self, path: str) -> bool:
        cur = self.db.execute("SELECT 1 FROM store_entries WHERE path=?", (check_path(path),))
        return cur.fetchone() is not None

    def put(self, entry: StoreEntry) -> None:
        # one statement inside one transaction: the row is replaced whole or not at all
        with self.db:
            self.db.execute(
                "INSERT INTO store_entries(path,sealed,recipient,created_at) VALUES(?,?,?,?) "
                "ON CONFLICT(path) DO UPDATE SET sealed=excluded.sealed, "
                "recipient=excluded.recipient, created_at=excluded.created_at",
                (check_path(entry.path), json.dumps(entry.sealed, sort_keys=True),
                 entry.recipient, entry.created_at)
            )

    def get(self, path: str) -> Optional[StoreEntry]:
        cur = self.db.execute("SELECT path,sealed,created_at FROM store_entries WHERE path=?", (check_path(path),))
        row = cur.fetchone()
        if not row: return None
        return StoreEntry(path=row[0], sealed=json.loads(row[1]), created_at=row[2])

    def delete(self, path: str) -> bool:
        with self.db:
            cur = self.db.execute("DELETE FROM store_entries WHERE path=?", (check_path(path),))
        return cur.rowcount > 0

    def list_paths(self, prefix: str = "") -> List[str]:
        cur = self.db.execute(
            "SELECT path FROM store_entries WHERE substr(path, 1, ?) = ? ORDER BY path",
            (len(prefix), prefix)
        )
        return [r[0] for r in cur.fetchall()]

    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.db.execute("INSERT INTO audit(ts,event_type,payload) VALUES(?,?,?)",
                        (now_ts(), event_type, json.dumps(payload, separators=(",", ":"), sort_keys=True)))
        self.db.commit()

    def close(self):
        self.db.close()
