"""
galaxykeys.errors
-----------------
Exception hierarchy for the provisioning engine.

Slot-local errors (SlotError subclasses) are raised by the generator and
writers and caught only by the orchestrator, which decides whether the run
continues or halts. Everything else is fatal before processing starts.
"""

from __future__ import annotations
from typing import Any, Optional


class GalaxyKeysError(Exception):
    pass


class ConfigError(GalaxyKeysError):
    pass


class PlanningInconsistency(GalaxyKeysError):
    """The namespace specification yields zero, duplicate or invalid slots."""
    pass


class IdentityError(GalaxyKeysError):
    """Root identity missing, unreadable or failing its self-test."""
    pass


class SlotError(GalaxyKeysError):
    kind: str = "SlotError"
    halts: bool = True

    def __init__(self, slot: Any, message: str = ""):
        self.slot = slot
        super().__init__(message or f"{self.kind} for {slot}")


class GenerationExhausted(SlotError):
    kind = "GenerationExhausted"

    def __init__(self, slot: Any, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(slot, f"keypair generation failed for {slot} after {attempts} attempts{detail}")


class DeclinedOverwrite(SlotError):
    kind = "DeclinedOverwrite"
    halts = False  # terminal for the slot only

    def __init__(self, slot: Any, target: str):
        self.target = target
        super().__init__(slot, f"overwrite of {target} declined for {slot}")


class PersistenceFailure(SlotError):
    kind = "PersistenceFailure"

    def __init__(self, slot: Any, target: str, reason: str = ""):
        self.target = target
        self.reason = reason
        super().__init__(slot, f"failed to persist {target} for {slot}" + (f": {reason}" if reason else ""))
