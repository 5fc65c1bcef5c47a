"""
galaxykeys.slots
----------------
Slot planning: turns a namespace specification into the ordered list of
(pod, role) identity slots that need a keypair.

Ordering is fixed: the root pod's roles in declared order, then pods 1..N
ascending with the single pod role. plan() keeps no state, so a re-run after
a partial failure walks the namespace in exactly the same order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Tuple
import re

from .constants import (
    ARTIFACT_EXT, DEFAULT_POD_COUNT, DEFAULT_POD_ROLE, DEFAULT_ROOT_ROLES,
    POD_MAX, POD_MIN, POD_PREFIX, POD_WIDTH, PRIVATE_SUFFIX, PUBLIC_SUFFIX,
    ROOT_POD,
)
from .errors import PlanningInconsistency

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

TIER_ROOT = "root"
TIER_PODS = "pods"


def validate_name(value: str, what: str = "store name") -> str:
    if not value or value in (".", "..") or not _NAME_RE.match(value):
        raise PlanningInconsistency(
            f"invalid {what} {value!r}: use letters, numbers, dash or underscore"
        )
    return value


@dataclass(frozen=True)
class IdentitySlot:
    """One (pod, role) unit requiring its own keypair."""
    root: str
    pod: int
    role: str
    pod_width: int = POD_WIDTH

    @property
    def pod_label(self) -> str:
        return f"{POD_PREFIX}{self.pod:0{self.pod_width}d}"

    @property
    def tier(self) -> str:
        return TIER_ROOT if self.pod == ROOT_POD else TIER_PODS

    @property
    def comment(self) -> str:
        return f"{self.pod_label}_{self.role}"

    @property
    def store_path(self) -> str:
        name = f"{self.root}_{self.role}_{self.pod_label}_{PRIVATE_SUFFIX}"
        return "/".join((self.root, self.pod_label, self.role, name))

    @property
    def artifact_path(self) -> str:
        """Path of the public key file, relative to the store directory."""
        name = f"{self.root}_{self.role}_{self.pod_label}_{PUBLIC_SUFFIX}{ARTIFACT_EXT}"
        return "/".join((self.pod_label, self.role, name))

    def __str__(self) -> str:
        return f"{self.pod_label}/{self.role}"


@dataclass(frozen=True)
class NamespaceSpec:
    root: str
    pod_count: int = DEFAULT_POD_COUNT
    root_roles: Tuple[str, ...] = DEFAULT_ROOT_ROLES
    pod_role: str = DEFAULT_POD_ROLE
    pod_width: int = POD_WIDTH


def expected_slot_count(spec: NamespaceSpec) -> int:
    return len(spec.root_roles) + spec.pod_count


def plan(spec: NamespaceSpec) -> List[IdentitySlot]:
    validate_name(spec.root)
    for role in (*spec.root_roles, spec.pod_role):
        validate_name(role, "role")
    if len(set(spec.root_roles)) != len(spec.root_roles):
        raise PlanningInconsistency(f"duplicate roles in root pod: {list(spec.root_roles)}")
    if spec.pod_count < 0 or ROOT_POD + spec.pod_count > POD_MAX:
        raise PlanningInconsistency(
            f"pod_count {spec.pod_count} outside {POD_MIN}..{POD_MAX - ROOT_POD}"
        )
    if spec.pod_width < len(str(POD_MAX)):
        raise PlanningInconsistency(f"pod width {spec.pod_width} cannot render pod {POD_MAX}")

    slots = [IdentitySlot(spec.root, ROOT_POD, role, spec.pod_width) for role in spec.root_roles]
    slots.extend(
        IdentitySlot(spec.root, pod, spec.pod_role, spec.pod_width)
        for pod in range(ROOT_POD + 1, ROOT_POD + spec.pod_count + 1)
    )

    if not slots:
        raise PlanningInconsistency("namespace specification yields no slots")
    if len({s.store_path for s in slots}) != len(slots):
        raise PlanningInconsistency("namespace specification yields duplicate store paths")
    return slots
