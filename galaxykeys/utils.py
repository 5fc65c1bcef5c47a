"""
galaxykeys.utils
----------------
Small helpers for base64, timestamps, fingerprints, buffer wiping and
atomic owner-only file publishing.
"""

from __future__ import annotations
import base64, hashlib, os, tempfile, time
from typing import Union

from .constants import DIR_MODE, FILE_MODE

def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")

def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode("ascii"))

def now_ts() -> str:
    # RFC3339 / ISO 8601 in UTC, second precision
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())

def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

def fingerprint(pub_raw: bytes) -> str:
    # 16 bytes = 32 hex chars, enough to address a root identity
    return sha256(pub_raw)[:32]

def secure_zero(buf: Union[bytearray, memoryview, None]) -> None:
    """Overwrite a mutable buffer in place. Immutable bytes cannot be wiped."""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0

def ensure_private_dir(path: str) -> None:
    """Create `path` and any missing parents, each one owner-only."""
    path = os.path.abspath(path)
    if os.path.isdir(path):
        return
    parent = os.path.dirname(path)
    if parent != path:
        ensure_private_dir(parent)
    try:
        os.mkdir(path, DIR_MODE)
    except FileExistsError:
        if not os.path.isdir(path):
            raise

def atomic_write(path: str, data: bytes, mode: int = FILE_MODE) -> None:
    """
    Publish `data` at `path` via a sibling temp file and os.replace().

    A reader either sees the previous file or the complete new one; the temp
    file is unlinked if anything fails before the rename.
    """
    directory = os.path.dirname(path) or "."
    ensure_private_dir(directory)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        os.fchmod(fd, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
