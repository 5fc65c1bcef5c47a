import os

import pytest

from galaxykeys.crypto import RootIdentity
from galaxykeys.errors import DeclinedOverwrite, IdentityError, PersistenceFailure
from galaxykeys.policy import AlwaysOverwrite, CallbackPolicy, NeverOverwrite
from galaxykeys.slots import plan
from galaxykeys.storage import InMemoryStorage, StoreEntry
from galaxykeys.writers import ArtifactWriter, SecretStoreWriter, reseal_entries


def test_secret_writer_round_trip(identity, store, small_ns):
    slot = plan(small_ns)[0]
    SecretStoreWriter(store, identity, NeverOverwrite()).write(slot, bytearray(b"PRIVATE KEY"))
    entry = store.get(slot.store_path)
    assert entry.recipient == identity.fingerprint
    assert b"PRIVATE KEY" not in store.entries[slot.store_path]
    assert identity.decrypt(entry.sealed, aad=slot.store_path.encode()) == b"PRIVATE KEY"


def test_secret_writer_overwrite_policy(identity, store, small_ns):
    slot = plan(small_ns)[0]
    asked = []
    SecretStoreWriter(store, identity, AlwaysOverwrite()).write(slot, b"first")
    before = store.entries[slot.store_path]

    declining = SecretStoreWriter(store, identity, CallbackPolicy(lambda t: asked.append(t) or False))
    with pytest.raises(DeclinedOverwrite) as exc:
        declining.write(slot, b"second")
    assert exc.value.target == slot.store_path
    assert asked == [slot.store_path]
    assert store.entries[slot.store_path] == before

    SecretStoreWriter(store, identity, AlwaysOverwrite()).write(slot, b"third")
    assert identity.decrypt(store.get(slot.store_path).sealed, aad=slot.store_path.encode()) == b"third"


def test_secret_writer_wraps_storage_errors(identity, small_ns):
    class Broken(InMemoryStorage):
        def put(self, entry):
            raise OSError("disk full")

    slot = plan(small_ns)[0]
    with pytest.raises(PersistenceFailure) as exc:
        SecretStoreWriter(Broken(), identity, AlwaysOverwrite()).write(slot, b"k")
    assert "disk full" in str(exc.value)


def test_artifact_writer(tmp_path, small_ns):
    slot = plan(small_ns)[2]
    writer = ArtifactWriter(str(tmp_path / "T"), NeverOverwrite())
    writer.write(slot, b"ssh-rsa AAAA pod001_R")
    target = tmp_path / "T" / "pod001" / "R" / "T_R_pod001_PUBLIC.pub"
    assert writer.target(slot) == str(target)
    assert target.read_bytes() == b"ssh-rsa AAAA pod001_R\n"
    assert oct(os.stat(target).st_mode & 0o777) == "0o600"

    with pytest.raises(DeclinedOverwrite):
        writer.write(slot, b"ssh-rsa BBBB")
    assert target.read_bytes() == b"ssh-rsa AAAA pod001_R\n"

    ArtifactWriter(str(tmp_path / "T"), AlwaysOverwrite()).write(slot, b"ssh-rsa BBBB")
    assert target.read_bytes() == b"ssh-rsa BBBB\n"


def test_artifact_writer_failure(tmp_path, small_ns):
    blocker = tmp_path / "T"
    blocker.write_text("not a directory")
    with pytest.raises(PersistenceFailure):
        ArtifactWriter(str(blocker), AlwaysOverwrite()).write(plan(small_ns)[0], b"ssh-rsa A")


def test_interrupted_artifact_publish_keeps_previous_file(tmp_path, small_ns, monkeypatch):
    slot = plan(small_ns)[2]
    writer = ArtifactWriter(str(tmp_path / "T"), AlwaysOverwrite())
    writer.write(slot, b"ssh-rsa AAAA pod001_R")
    target = tmp_path / "T" / "pod001" / "R" / "T_R_pod001_PUBLIC.pub"

    def boom(src, dst):
        raise OSError("disk yanked")

    monkeypatch.setattr("galaxykeys.utils.os.replace", boom)
    with pytest.raises(PersistenceFailure):
        writer.commit(slot, b"ssh-rsa BBBB pod001_R")
    monkeypatch.undo()

    assert target.read_bytes() == b"ssh-rsa AAAA pod001_R\n"
    assert [p.name for p in target.parent.iterdir()] == [target.name]


def test_reseal_entries_moves_store_to_new_identity(identity, store, small_ns):
    slots = plan(small_ns)
    writer = SecretStoreWriter(store, identity, AlwaysOverwrite())
    for slot in slots:
        writer.write(slot, f"key {slot}".encode())

    successor = RootIdentity.generate()
    assert reseal_entries(store, "T/", identity, successor) == len(slots)

    for slot in slots:
        entry = store.get(slot.store_path)
        assert entry.recipient == successor.fingerprint
        assert successor.decrypt(entry.sealed, aad=slot.store_path.encode()) == f"key {slot}".encode()
        with pytest.raises(IdentityError):
            identity.decrypt(entry.sealed, aad=slot.store_path.encode())


def test_reseal_entries_leaves_store_unchanged_on_foreign_entry(identity, store, small_ns):
    slots = plan(small_ns)
    SecretStoreWriter(store, identity, AlwaysOverwrite()).write(slots[0], b"mine")
    stranger = RootIdentity.generate()
    path = slots[1].store_path
    store.put(StoreEntry(path=path, sealed=stranger.encrypt(b"theirs", aad=path.encode())))
    before = store.snapshot()

    with pytest.raises(IdentityError):
        reseal_entries(store, "T/", identity, RootIdentity.generate())
    assert store.snapshot() == before
