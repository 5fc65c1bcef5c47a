"""
galaxykeys.writers
------------------
Persist the two halves of a slot's keypair.

- SecretStoreWriter: private half, sealed to the root identity, into the
  StorageProvider at `slot.store_path`
- ArtifactWriter: public half as a plaintext `.pub` file mirroring the slot's
  place in the namespace

Each writer splits its work into confirm() (overwrite policy) and commit()
(the actual write) so the orchestrator can settle both overwrite questions
before either half is written. write() does both for standalone use.
"""

from __future__ import annotations
import logging
import os

from .errors import DeclinedOverwrite, PersistenceFailure
from .policy import Decision, OverwritePolicy
from .slots import IdentitySlot
from .storage import StorageProvider, StoreEntry
from .utils import atomic_write, ensure_private_dir, secure_zero

log = logging.getLogger("GK.Writers")


class _PolicyGate:
    def __init__(self, policy: OverwritePolicy):
        self.policy = policy

    def _gate(self, slot: IdentitySlot, target: str, present: bool) -> None:
        if not present:
            return
        decision = self.policy.decide(target)
        if decision != Decision.OVERWRITE:
            log.warning(f"overwrite declined for {slot}: {target}")
            raise DeclinedOverwrite(slot, target)
        log.info(f"overwriting existing {target} for {slot}")


class SecretStoreWriter(_PolicyGate):
    def __init__(self, storage: StorageProvider, identity, policy: OverwritePolicy):
        super().__init__(policy)
        self.storage = storage
        self.identity = identity

    def target(self, slot: IdentitySlot) -> str:
        return slot.store_path

    def confirm(self, slot: IdentitySlot) -> None:
        target = self.target(slot)
        try:
            present = self.storage.exists(target)
        except Exception as exc:
            raise PersistenceFailure(slot, target, f"{exc.__class__.__name__}: {exc}") from exc
        self._gate(slot, target, present)

    def commit(self, slot: IdentitySlot, private_material) -> None:
        target = self.target(slot)
        try:
            # bind the path as AAD so an entry cannot be replayed at another path
            sealed = self.identity.encrypt(private_material, aad=target.encode("utf-8"))
            self.storage.put(StoreEntry(path=target, sealed=sealed))
        except Exception as exc:
            raise PersistenceFailure(slot, target, f"{exc.__class__.__name__}: {exc}") from exc
        log.debug(f"stored private key for {slot} at {target}")

    def write(self, slot: IdentitySlot, private_material) -> None:
        self.confirm(slot)
        self.commit(slot, private_material)


class ArtifactWriter(_PolicyGate):
    def __init__(self, artifact_root: str, policy: OverwritePolicy):
        super().__init__(policy)
        self.artifact_root = os.path.abspath(os.path.expanduser(artifact_root))

    def target(self, slot: IdentitySlot) -> str:
        return os.path.join(self.artifact_root, *slot.artifact_path.split("/"))

    def confirm(self, slot: IdentitySlot) -> None:
        target = self.target(slot)
        self._gate(slot, target, os.path.lexists(target))

    def commit(self, slot: IdentitySlot, public_material: bytes) -> None:
        target = self.target(slot)
        try:
            ensure_private_dir(os.path.dirname(target))
            atomic_write(target, bytes(public_material).rstrip(b"\n") + b"\n")
        except OSError as exc:
            raise PersistenceFailure(slot, target, f"{exc.__class__.__name__}: {exc}") from exc
        log.debug(f"wrote public key for {slot} to {target}")

    def write(self, slot: IdentitySlot, public_material: bytes) -> None:
        self.confirm(slot)
        self.commit(slot, public_material)


def reseal_entries(storage: StorageProvider, prefix: str, old_identity, new_identity) -> int:
    """
    Re-encrypt every entry under `prefix` from old_identity to new_identity.

    All entries are decrypted and re-sealed before the first put(), so an
    entry the old identity cannot open aborts the rekey with the store
    unchanged. Returns the number of entries rewritten.
    """
    staged = []
    for path in storage.list_paths(prefix):
        entry = storage.get(path)
        if entry is None:
            continue
        aad = path.encode("utf-8")
        plaintext = bytearray(old_identity.decrypt(entry.sealed, aad=aad))
        try:
            staged.append(StoreEntry(path=path, sealed=new_identity.encrypt(plaintext, aad=aad)))
        finally:
            secure_zero(plaintext)
    for entry in staged:
        storage.put(entry)
    log.info(f"re-sealed {len(staged)} entries under {prefix!r} to {new_identity.fingerprint}")
    return len(staged)
