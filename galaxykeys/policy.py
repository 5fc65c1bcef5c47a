"""
galaxykeys.policy
-----------------
Overwrite decisions for targets that already exist.

The writers never talk to a terminal themselves; they ask an injected
OverwritePolicy. The CLI wires PromptOverwritePolicy, tests and unattended
runs use the fixed policies.
"""

from __future__ import annotations
from enum import Enum
from typing import Callable, Dict, Optional


class Decision(str, Enum):
    OVERWRITE = "overwrite"
    SKIP = "skip"


class OverwritePolicy:
    def decide(self, target: str) -> Decision:
        raise NotImplementedError

    def __call__(self, target: str) -> Decision:
        return self.decide(target)


class AlwaysOverwrite(OverwritePolicy):
    def decide(self, target: str) -> Decision:
        return Decision.OVERWRITE


class NeverOverwrite(OverwritePolicy):
    def decide(self, target: str) -> Decision:
        return Decision.SKIP


class CallbackPolicy(OverwritePolicy):
    """Adapts a plain `(target) -> bool | Decision` callable."""

    def __init__(self, fn: Callable[[str], object]):
        self._fn = fn

    def decide(self, target: str) -> Decision:
        result = self._fn(target)
        if isinstance(result, Decision):
            return result
        return Decision.OVERWRITE if result else Decision.SKIP


class PromptOverwritePolicy(OverwritePolicy):
    """Blocking y/N question; anything but y/Y declines."""

    def __init__(self, input_fn: Optional[Callable[[str], str]] = None):
        self._input = input_fn or input

    def decide(self, target: str) -> Decision:
        try:
            answer = self._input(f"{target} exists. Overwrite? (y/N): ")
        except EOFError:
            return Decision.SKIP
        return Decision.OVERWRITE if answer.strip() in ("y", "Y") else Decision.SKIP


_POLICIES: Dict[str, Callable[[], OverwritePolicy]] = {
    "prompt": PromptOverwritePolicy,
    "always": AlwaysOverwrite,
    "never": NeverOverwrite,
}


def get_policy(name: str = "prompt") -> OverwritePolicy:
    try:
        return _POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown overwrite policy: {name}") from None


class TierPolicy(str, Enum):
    """How the orchestrator treats a failed slot within one namespace tier."""
    STRICT = "strict"    # first failure halts the run
    LENIENT = "lenient"  # report and move to the next slot
