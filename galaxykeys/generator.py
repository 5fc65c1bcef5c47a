"""
galaxykeys.generator
--------------------
Per-slot keypair generation with a bounded retry.

A Keypair owns its private half in a mutable buffer and wipes it when the
`with` block that consumed it exits. Nothing here prompts or blocks on the
operator; exhausting the attempts raises GenerationExhausted.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional
import logging

from .constants import DEFAULT_KEY_ALGORITHM, DEFAULT_KEY_BITS, MAX_GENERATION_ATTEMPTS
from .crypto import KeypairPrimitive, NativeKeypairPrimitive
from .errors import GenerationExhausted
from .slots import IdentitySlot
from .utils import secure_zero

log = logging.getLogger("GK.Generator")


@dataclass
class Keypair:
    slot: IdentitySlot
    private_material: bytearray = field(repr=False)
    public_material: bytes = b""
    discarded: bool = False

    def discard(self) -> None:
        secure_zero(self.private_material)
        self.discarded = True

    def __enter__(self) -> "Keypair":
        return self

    def __exit__(self, *exc) -> None:
        self.discard()


class KeypairGenerator:
    def __init__(
        self,
        primitive: Optional[KeypairPrimitive] = None,
        algorithm: str = DEFAULT_KEY_ALGORITHM,
        bits: int = DEFAULT_KEY_BITS,
        max_attempts: int = MAX_GENERATION_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.primitive = primitive or NativeKeypairPrimitive()
        self.algorithm = algorithm
        self.bits = bits
        self.max_attempts = max_attempts

    def generate(self, slot: IdentitySlot) -> Keypair:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            private: Optional[bytearray] = None
            try:
                priv_out, pub_out = self.primitive.generate(self.algorithm, self.bits, slot.comment)
                if not priv_out:
                    raise ValueError("empty private key output")
                private = bytearray(priv_out)
                if not pub_out:
                    pub_out = self.primitive.derive_public(private, slot.comment)
                if not pub_out or not pub_out.strip():
                    raise ValueError("empty public key output")
                return Keypair(slot, private, bytes(pub_out).strip())
            except Exception as exc:
                # retry boundary: drop whatever the failed attempt produced
                secure_zero(private)
                last_error = exc
                log.warning(f"keypair attempt {attempt}/{self.max_attempts} failed for {slot}: "
                            f"{exc.__class__.__name__}: {exc}")

        raise GenerationExhausted(slot, self.max_attempts, last_error)
