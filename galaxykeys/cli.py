"""
galaxykeys command line.

    galaxykeys init CIX42          create the root identity for a store
    galaxykeys provision CIX42     generate every pod/role keypair
    galaxykeys status CIX42        compare the store against the namespace
    galaxykeys show CIX42/pod000/PAT/CIX42_PAT_pod000_PRIVATE
"""

from __future__ import annotations
import argparse
import getpass
import os
import sys
from typing import List, Optional, TextIO

from .config import ProvisionConfig
from .constants import ARTIFACT_EXT, EXIT_ABORTED, EXIT_OK, EXIT_PLANNING, EXTENDED_ROOT_ROLES, ROOT_ID_FILE
from .crypto import RootIdentity
from .errors import ConfigError, GalaxyKeysError, IdentityError
from .logger import configure
from .orchestrator import build_provisioner
from .policy import TierPolicy, get_policy
from .slots import expected_slot_count
from .storage import StoreEntry, load_storage_provider
from .storage.provider import check_path
from .utils import ensure_private_dir
from .writers import reseal_entries

TEST_SECRET = ".test_secret"


class ProgressBar:
    def __init__(self, stream: TextIO = sys.stderr, width: int = 50):
        self.stream = stream
        self.width = width

    def __call__(self, current: int, total: int) -> None:
        filled = current * self.width // total
        pct = current * 100 // total
        bar = "#" * filled + "-" * (self.width - filled)
        self.stream.write(f"\r[INFO] Progress: [{bar}] {current}/{total} ({pct}%)")
        if current == total:
            self.stream.write("\n")
        self.stream.flush()


def _config(args) -> ProvisionConfig:
    overrides = {
        "store": args.store,
        "home": args.home,
        "storage_provider": getattr(args, "storage", None),
        "db_path": getattr(args, "db_path", None),
    }
    for name in ("pod_count", "pod_role", "algorithm", "bits", "primitive"):
        overrides[name] = getattr(args, name, None)
    for name in ("root_tier", "pod_tier"):
        value = getattr(args, name, None)
        overrides[name] = TierPolicy(value) if value else None
    roles = getattr(args, "root_roles", None)
    if roles:
        overrides["root_roles"] = tuple(roles)
    if getattr(args, "extended_roles", False):
        overrides["root_roles"] = EXTENDED_ROOT_ROLES
    overwrite = getattr(args, "overwrite", None)
    if overwrite:
        overrides["overwrite"] = overwrite
    cfg = ProvisionConfig.from_env(**overrides)
    configure(cfg.log_level, cfg.log_file)
    return cfg.validate()


def _read_passphrase(args, confirm: bool = False, source: str = "passphrase_file",
                     prompt: str = "Enter passphrase for the root identity: ") -> str:
    path = getattr(args, source, None)
    if path:
        with open(path, "r", encoding="utf-8") as f:
            return f.readline().rstrip("\r\n")
    while True:
        first = getpass.getpass(prompt)
        if not first or "\n" in first or "\r" in first:
            print("[ERROR] Passphrase cannot be empty or contain newlines. Please try again.", file=sys.stderr)
            continue
        if confirm and getpass.getpass("Repeat passphrase: ") != first:
            print("[ERROR] Passphrases do not match. Please try again.", file=sys.stderr)
            continue
        return first


def cmd_init(args) -> int:
    cfg = _config(args)
    if os.path.isdir(cfg.store_dir):
        if not args.yes and input(f"Store already exists at {cfg.store_dir}. Continue? (y/N): ").strip() not in ("y", "Y"):
            print("[ERROR] Aborted by user due to existing store.", file=sys.stderr)
            return EXIT_ABORTED
    ensure_private_dir(cfg.store_dir)

    previous = None
    if os.path.exists(os.path.join(cfg.store_dir, ROOT_ID_FILE)):
        # existing entries are sealed to this identity; it must be unlocked to re-seal them
        current = _read_passphrase(args, source="current_passphrase_file",
                                   prompt="Enter current passphrase of the existing root identity: ")
        previous = RootIdentity.unlock(cfg.store_dir, current)
        print(f"[INFO] Existing root identity {previous.fingerprint} unlocked; entries will be re-sealed.")

    passphrase = cfg.passphrase or _read_passphrase(args, confirm=True)
    identity = RootIdentity.generate()

    storage = load_storage_provider(cfg.storage_config())
    try:
        if previous is not None:
            moved = reseal_entries(storage, cfg.store + "/", previous, identity)
            print(f"[OK] Re-sealed {moved} entries to the new root identity.")
        identity.save(cfg.store_dir, passphrase)
        print(f"[OK] Root identity created. Fingerprint: {identity.fingerprint}")

        print("[INFO] Testing root identity passphrase...")
        RootIdentity.unlock(cfg.store_dir, passphrase).self_test()

        test_path = f"{cfg.store}/{TEST_SECRET}"
        storage.put(StoreEntry(path=test_path, sealed=identity.encrypt(b"test", aad=test_path.encode("utf-8"))))
        entry = storage.get(test_path)
        if entry is None or identity.decrypt(entry.sealed, aad=test_path.encode("utf-8")) != b"test":
            raise IdentityError("store usability test failed")
        storage.delete(test_path)
    finally:
        storage.close()
    print(f"[OK] Store initialised at {cfg.store_dir}")
    return EXIT_OK


def cmd_provision(args) -> int:
    cfg = _config(args)
    identity = RootIdentity.load_recipient(cfg.store_dir)
    storage = load_storage_provider(cfg.storage_config())
    policy = get_policy(cfg.overwrite)
    progress = None if args.no_progress else ProgressBar()

    try:
        report = build_provisioner(cfg, identity, storage, policy, on_progress=progress).run()
        stored = storage.count(cfg.store + "/")
    finally:
        storage.close()

    print("=========================================")
    print("        KEY GENERATION " + ("COMPLETE!" if report.exit_code == EXIT_OK else "FAILED"))
    print("=========================================")
    print(report.summary())
    for outcome in report.outcomes:
        if outcome.error is not None:
            print(f"  {outcome.slot}: {outcome.error_kind}: {outcome.error}")
    print("")
    print("Key Store Details:")
    print(f"  Local Path: {cfg.store_dir}")
    print(f"  Root identity: {identity.fingerprint}")
    print(f"  Entries: {stored} encrypted key entries")
    print("")
    print("The root identity passphrase is required to decrypt keys.")
    return report.exit_code


def cmd_status(args) -> int:
    cfg = _config(args)
    identity = RootIdentity.load_recipient(cfg.store_dir)
    storage = load_storage_provider(cfg.storage_config())
    stored, foreign = 0, []
    try:
        for path in storage.list_paths(cfg.store + "/"):
            entry = storage.get(path)
            if entry is not None and entry.recipient == identity.fingerprint:
                stored += 1
            else:
                foreign.append(path)
    finally:
        storage.close()
    artifacts = 0
    for _, _, files in os.walk(cfg.store_dir):
        artifacts += sum(1 for f in files if f.endswith(ARTIFACT_EXT))
    expected = expected_slot_count(cfg.namespace())
    print(f"store:        {cfg.store_dir}")
    print(f"root identity {identity.fingerprint}")
    print(f"entries:      {stored}/{expected}")
    print(f"public keys:  {artifacts}/{expected}")
    if foreign:
        print(f"unreadable:   {len(foreign)} entries sealed to another root identity")
        for path in foreign:
            print(f"  {path}")
    ok = not foreign and stored == expected and artifacts == expected
    return EXIT_OK if ok else EXIT_ABORTED


def cmd_show(args) -> int:
    store = args.path.split("/", 1)[0]
    args.store = store
    cfg = _config(args)
    try:
        check_path(args.path)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    storage = load_storage_provider(cfg.storage_config())
    try:
        entry = storage.get(args.path)
    finally:
        storage.close()
    if entry is None:
        print(f"[ERROR] No entry at {args.path}", file=sys.stderr)
        return EXIT_ABORTED
    identity = RootIdentity.unlock(cfg.store_dir, cfg.passphrase or _read_passphrase(args))
    sys.stdout.write(identity.decrypt(entry.sealed, aad=args.path.encode("utf-8")).decode("utf-8"))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="galaxykeys", description="Provision a pod/role SSH keyring sealed to one root identity")
    parser.add_argument("--home", default=None, help="store home (default: $GALAXYKEYS_HOME or ~/.password-store)")
    parser.add_argument("--storage", choices=["file", "sqlite", "memory"], default=None)
    parser.add_argument("--db-path", dest="db_path", default=None, help="sqlite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="create the root identity for a store")
    p.add_argument("store")
    p.add_argument("--yes", action="store_true", help="continue if the store already exists")
    p.add_argument("--passphrase-file", default=None)
    p.add_argument("--current-passphrase-file", default=None,
                   help="passphrase of the existing root identity, when re-initialising")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("provision", help="generate and store every slot's keypair")
    p.add_argument("store")
    p.add_argument("--pods", dest="pod_count", type=int, default=None, help="number of single-role pods (default 255)")
    p.add_argument("--root-roles", nargs="+", default=None, help="roles of pod000, in order")
    p.add_argument("--extended-roles", action="store_true", help=f"use {', '.join(EXTENDED_ROOT_ROLES)} for pod000")
    p.add_argument("--pod-role", default=None)
    p.add_argument("--algorithm", choices=["rsa", "ed25519"], default=None)
    p.add_argument("--bits", type=int, default=None)
    p.add_argument("--primitive", choices=["native", "ssh-keygen"], default=None)
    p.add_argument("--root-tier", choices=[t.value for t in TierPolicy], default=None)
    p.add_argument("--pod-tier", choices=[t.value for t in TierPolicy], default=None)
    group = p.add_mutually_exclusive_group()
    group.add_argument("--yes", dest="overwrite", action="store_const", const="always", help="overwrite existing keys without asking")
    group.add_argument("--keep-existing", dest="overwrite", action="store_const", const="never", help="never overwrite existing keys")
    p.add_argument("--no-progress", action="store_true")
    p.set_defaults(func=cmd_provision)

    p = sub.add_parser("status", help="count entries and public keys against the namespace")
    p.add_argument("store")
    p.add_argument("--pods", dest="pod_count", type=int, default=None)
    p.add_argument("--root-roles", nargs="+", default=None)
    p.add_argument("--extended-roles", action="store_true")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("show", help="decrypt and print one entry")
    p.add_argument("path")
    p.add_argument("--passphrase-file", default=None)
    p.set_defaults(func=cmd_show, store=None)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ConfigError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return EXIT_PLANNING
    except GalaxyKeysError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return EXIT_ABORTED
    except KeyboardInterrupt:
        print("\n[ERROR] Interrupted.", file=sys.stderr)
        return EXIT_ABORTED


if __name__ == "__main__":
    sys.exit(main())
