"""
galaxykeys.crypto
-----------------
Cryptographic primitives for galaxykeys:

- X25519 + HKDF + AES-GCM: sealing private keys to the root identity
- RootIdentity: the long-lived recipient protecting every store entry
- Keypair primitives: native (cryptography) and ssh-keygen backends that
  produce the per-slot OpenSSH keypairs
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Tuple, Optional, Dict
import json, os, subprocess, tempfile

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa, x25519
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .constants import (
    FILE_MODE, HKDF_INFO, MAX_RSA_BITS, MIN_RSA_BITS, ROOT_ID_FILE,
    ROOT_KEY_FILE, SEALED_ALG, SEALED_VERSION,
)
from .errors import IdentityError
from .utils import atomic_write, b64d, b64e, fingerprint, now_ts


# --------- X25519 + HKDF + AES-GCM (seal/open) ----------
def x25519_generate() -> Tuple[bytes, bytes]:
    sk = x25519.X25519PrivateKey.generate()
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()

def derive_key(sender_priv: bytes, recipient_pub: bytes, salt: Optional[bytes] = None, info: bytes = HKDF_INFO) -> bytes:
    sk = x25519.X25519PrivateKey.from_private_bytes(sender_priv)
    shared = sk.exchange(x25519.X25519PublicKey.from_public_bytes(recipient_pub))
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=salt, info=info)
    return hkdf.derive(shared)  # 256-bit AEAD key

def aead_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    aes = AESGCM(key)
    nonce = os.urandom(12)
    ct = aes.encrypt(nonce, plaintext, aad)
    return nonce, ct

def aead_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
    aes = AESGCM(key)
    return aes.decrypt(nonce, ciphertext, aad)

def seal(plaintext: bytes, recipient_pub: bytes, aad: Optional[bytes] = None) -> Dict[str, str]:
    """Encrypt to a recipient with a fresh ephemeral X25519 key."""
    eph_priv, eph_pub = x25519_generate()
    key = derive_key(eph_priv, recipient_pub, salt=eph_pub + recipient_pub)
    nonce, ct = aead_encrypt(key, bytes(plaintext), aad=aad)
    return {
        "v": SEALED_VERSION,
        "alg": SEALED_ALG,
        "recipient": fingerprint(recipient_pub),
        "epk": b64e(eph_pub),
        "nonce": b64e(nonce),
        "ciphertext": b64e(ct),
    }

def unseal(sealed: Dict[str, str], recipient_priv: bytes, aad: Optional[bytes] = None) -> bytes:
    recipient_pub = x25519.X25519PrivateKey.from_private_bytes(recipient_priv).public_key().public_bytes_raw()
    if sealed.get("recipient") != fingerprint(recipient_pub):
        raise IdentityError("entry was sealed to a different root identity")
    epk = b64d(sealed["epk"])
    key = derive_key(recipient_priv, epk, salt=epk + recipient_pub)
    return aead_decrypt(key, b64d(sealed["nonce"]), b64d(sealed["ciphertext"]), aad=aad)


# --------- Root identity ----------
class RootIdentity:
    """
    Recipient address for every store entry.

    A public-only instance (load_recipient) can encrypt; decrypting needs the
    passphrase-protected private half (unlock).
    """

    def __init__(self, public_raw: bytes, private_key: Optional[x25519.X25519PrivateKey] = None):
        self.public_raw = public_raw
        self._sk = private_key

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.public_raw)

    @property
    def can_decrypt(self) -> bool:
        return self._sk is not None

    @classmethod
    def generate(cls) -> "RootIdentity":
        sk = x25519.X25519PrivateKey.generate()
        return cls(sk.public_key().public_bytes_raw(), sk)

    def encrypt(self, plaintext: bytes, aad: Optional[bytes] = None) -> Dict[str, str]:
        return seal(plaintext, self.public_raw, aad=aad)

    def decrypt(self, sealed: Dict[str, str], aad: Optional[bytes] = None) -> bytes:
        if self._sk is None:
            raise IdentityError("root identity is locked; unlock it with its passphrase first")
        try:
            return unseal(sealed, self._sk.private_bytes_raw(), aad=aad)
        except (InvalidTag, KeyError, ValueError) as exc:
            raise IdentityError(f"cannot decrypt entry: {exc.__class__.__name__}") from exc

    def self_test(self) -> None:
        """Encrypt and decrypt a random sample; raises IdentityError on mismatch."""
        sample = os.urandom(16)
        if self.decrypt(self.encrypt(sample, aad=b"self-test"), aad=b"self-test") != sample:
            raise IdentityError("root identity self-test failed")

    # --- persistence ---

    def save(self, store_dir: str, passphrase: str) -> None:
        if self._sk is None:
            raise IdentityError("cannot save a public-only root identity")
        if not passphrase:
            raise IdentityError("passphrase cannot be empty")
        pem = self._sk.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(passphrase.encode("utf-8")),
        )
        record = {
            "fingerprint": self.fingerprint,
            "public_key_b64": b64e(self.public_raw),
            "created_at": now_ts(),
        }
        atomic_write(os.path.join(store_dir, ROOT_KEY_FILE), pem, FILE_MODE)
        atomic_write(os.path.join(store_dir, ROOT_ID_FILE),
                     json.dumps(record, indent=2).encode("utf-8"), FILE_MODE)

    @classmethod
    def load_recipient(cls, store_dir: str) -> "RootIdentity":
        path = os.path.join(store_dir, ROOT_ID_FILE)
        try:
            with open(path, "r", encoding="utf-8") as f:
                record = json.load(f)
        except FileNotFoundError as exc:
            raise IdentityError(f"no root identity at {path}; run 'galaxykeys init' first") from exc
        except ValueError as exc:
            raise IdentityError(f"corrupt root identity record at {path}") from exc
        public_raw = b64d(record["public_key_b64"])
        if fingerprint(public_raw) != record.get("fingerprint"):
            raise IdentityError(f"fingerprint mismatch in {path}")
        return cls(public_raw)

    @classmethod
    def unlock(cls, store_dir: str, passphrase: str) -> "RootIdentity":
        recipient = cls.load_recipient(store_dir)
        path = os.path.join(store_dir, ROOT_KEY_FILE)
        try:
            with open(path, "rb") as f:
                sk = serialization.load_pem_private_key(f.read(), password=passphrase.encode("utf-8"))
        except FileNotFoundError as exc:
            raise IdentityError(f"no root private key at {path}") from exc
        except (ValueError, TypeError) as exc:
            raise IdentityError("wrong passphrase or unreadable root private key") from exc
        if not isinstance(sk, x25519.X25519PrivateKey) or sk.public_key().public_bytes_raw() != recipient.public_raw:
            raise IdentityError("root private key does not match the recorded root identity")
        return cls(recipient.public_raw, sk)


# --------- Keypair primitives ----------
class KeypairPrimitive(ABC):
    """Produces one OpenSSH keypair. The public half may come back empty."""

    name = "base"

    @abstractmethod
    def generate(self, algorithm: str, bits: int, comment: str) -> Tuple[bytes, bytes]:
        ...

    def derive_public(self, private_bytes: bytes, comment: str = "") -> bytes:
        sk = serialization.load_ssh_private_key(bytes(private_bytes), password=None)
        pub = sk.public_key().public_bytes(serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH)
        return pub + (b" " + comment.encode("utf-8") if comment else b"")


def check_algorithm(algorithm: str, bits: int) -> None:
    if algorithm == "rsa":
        if not MIN_RSA_BITS <= bits <= MAX_RSA_BITS:
            raise ValueError(f"RSA key length must be between {MIN_RSA_BITS} and {MAX_RSA_BITS}, got {bits}")
    elif algorithm != "ed25519":
        raise ValueError(f"unsupported key algorithm: {algorithm}")


class NativeKeypairPrimitive(KeypairPrimitive):
    name = "native"

    def generate(self, algorithm: str, bits: int, comment: str) -> Tuple[bytes, bytes]:
        check_algorithm(algorithm, bits)
        if algorithm == "rsa":
            sk = rsa.generate_private_key(public_exponent=65537, key_size=bits)
        else:
            sk = ed25519.Ed25519PrivateKey.generate()
        priv = sk.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.OpenSSH,
            encryption_algorithm=serialization.NoEncryption(),
        )
        pub = sk.public_key().public_bytes(serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH)
        if comment:
            pub += b" " + comment.encode("utf-8")
        return priv, pub


class SshKeygenPrimitive(KeypairPrimitive):
    """
    Shells out to ssh-keygen inside a private temporary directory.

    The directory is created 0700 and removed on every exit path, so no key
    file outlives the call.
    """

    name = "ssh-keygen"

    def __init__(self, binary: str = "ssh-keygen", timeout: int = 120):
        self.binary = binary
        self.timeout = timeout

    def generate(self, algorithm: str, bits: int, comment: str) -> Tuple[bytes, bytes]:
        check_algorithm(algorithm, bits)
        with tempfile.TemporaryDirectory(prefix="gk-") as workdir:
            os.chmod(workdir, 0o700)
            key_file = os.path.join(workdir, "id")
            cmd = [self.binary, "-q", "-t", algorithm]
            if algorithm == "rsa":
                cmd += ["-b", str(bits)]
            cmd += ["-N", "", "-C", comment, "-f", key_file]
            subprocess.run(cmd, check=True, capture_output=True, timeout=self.timeout)

            priv = _read_if_present(key_file)
            pub = _read_if_present(key_file + ".pub")
            if priv and not pub:
                res = subprocess.run([self.binary, "-y", "-f", key_file], check=True,
                                     capture_output=True, timeout=self.timeout)
                pub = res.stdout
            return priv, pub


def _read_if_present(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return b""


def get_primitive(name: str = "native") -> KeypairPrimitive:
    if name == "native":
        return NativeKeypairPrimitive()
    if name == "ssh-keygen":
        return SshKeygenPrimitive()
    raise ValueError(f"Unknown keypair primitive: {name}")
