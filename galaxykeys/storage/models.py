# galaxykeys/storage/models.py
from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Any, Dict
import json

from ..utils import now_ts


@dataclass
class StoreEntry:
    """
    Persisted, encrypted private key for one slot.

    `sealed` is the output of RootIdentity.encrypt(); the plaintext never
    reaches a provider. Providers store the JSON form verbatim.
    """
    path: str
    sealed: Dict[str, Any]
    created_at: str = field(default_factory=now_ts)

    @property
    def recipient(self) -> str:
        return self.sealed.get("recipient", "")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreEntry":
        return cls(
            path=data["path"],
            sealed=dict(data["sealed"]),
            created_at=data.get("created_at") or now_ts(),
        )

    @classmethod
    def from_json_bytes(cls, raw: bytes) -> "StoreEntry":
        return cls.from_dict(json.loads(raw.decode("utf-8")))
