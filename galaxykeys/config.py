"""
galaxykeys.config
-----------------
Explicit run configuration.

Everything the engine needs (store location, namespace shape, key
parameters, tier policies, the root passphrase) is carried by a
ProvisionConfig handed to the entry point. from_env() is the only place that
reads GALAXYKEYS_* variables.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple
import os

from .constants import (
    DEFAULT_KEY_ALGORITHM, DEFAULT_KEY_BITS, DEFAULT_POD_COUNT, DEFAULT_POD_ROLE,
    DEFAULT_ROOT_ROLES, MAX_GENERATION_ATTEMPTS,
)
from .errors import ConfigError, PlanningInconsistency
from .policy import TierPolicy
from .slots import NamespaceSpec, TIER_PODS, TIER_ROOT, validate_name


@dataclass
class ProvisionConfig:
    store: str
    home: str = "~/.password-store"
    pod_count: int = DEFAULT_POD_COUNT
    root_roles: Tuple[str, ...] = DEFAULT_ROOT_ROLES
    pod_role: str = DEFAULT_POD_ROLE
    algorithm: str = DEFAULT_KEY_ALGORITHM
    bits: int = DEFAULT_KEY_BITS
    max_attempts: int = MAX_GENERATION_ATTEMPTS
    primitive: str = "native"
    storage_provider: str = "file"
    db_path: Optional[str] = None
    root_tier: TierPolicy = TierPolicy.LENIENT
    pod_tier: TierPolicy = TierPolicy.STRICT
    overwrite: str = "prompt"
    passphrase: Optional[str] = field(default=None, repr=False)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def home_dir(self) -> str:
        return os.path.abspath(os.path.expanduser(self.home))

    @property
    def store_dir(self) -> str:
        return os.path.join(self.home_dir, self.store)

    def namespace(self) -> NamespaceSpec:
        return NamespaceSpec(
            root=self.store,
            pod_count=self.pod_count,
            root_roles=tuple(self.root_roles),
            pod_role=self.pod_role,
        )

    def tiers(self) -> Dict[str, TierPolicy]:
        return {TIER_ROOT: self.root_tier, TIER_PODS: self.pod_tier}

    def storage_config(self) -> Dict[str, Any]:
        return {
            "provider": self.storage_provider,
            "home": self.home_dir,
            "sqlite_path": self.db_path or os.path.join(self.store_dir, "galaxykeys.db"),
        }

    def validate(self) -> "ProvisionConfig":
        try:
            validate_name(self.store)
        except PlanningInconsistency as exc:
            raise ConfigError(str(exc)) from exc
        if os.path.islink(self.store_dir):
            raise ConfigError(f"refusing to operate on symlinked base path: {self.store_dir}")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")
        return self

    def with_overrides(self, **changes) -> "ProvisionConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, **overrides) -> "ProvisionConfig":
        env = os.getenv
        try:
            cfg = cls(
                store=env("GALAXYKEYS_STORE", ""),
                home=env("GALAXYKEYS_HOME", "~/.password-store"),
                pod_count=int(env("GALAXYKEYS_POD_COUNT", str(DEFAULT_POD_COUNT))),
                root_roles=_split_roles(env("GALAXYKEYS_ROOT_ROLES", "")) or DEFAULT_ROOT_ROLES,
                pod_role=env("GALAXYKEYS_POD_ROLE", DEFAULT_POD_ROLE),
                algorithm=env("GALAXYKEYS_KEY_ALGORITHM", DEFAULT_KEY_ALGORITHM).lower(),
                bits=int(env("GALAXYKEYS_KEY_BITS", str(DEFAULT_KEY_BITS))),
                primitive=env("GALAXYKEYS_PRIMITIVE", "native"),
                storage_provider=env("GALAXYKEYS_STORAGE_PROVIDER", "file"),
                db_path=env("GALAXYKEYS_DB_PATH") or None,
                root_tier=TierPolicy(env("GALAXYKEYS_ROOT_TIER", TierPolicy.LENIENT.value).lower()),
                pod_tier=TierPolicy(env("GALAXYKEYS_POD_TIER", TierPolicy.STRICT.value).lower()),
                overwrite=env("GALAXYKEYS_OVERWRITE", "prompt"),
                log_level=env("GALAXYKEYS_LOG_LEVEL", "INFO"),
                log_file=env("GALAXYKEYS_LOG_FILE") or None,
            )
        except ValueError as exc:
            raise ConfigError(f"invalid GALAXYKEYS_* setting: {exc}") from exc
        return cfg.with_overrides(**overrides)


def _split_roles(raw: str) -> Tuple[str, ...]:
    return tuple(r.strip() for r in raw.split(",") if r.strip())
