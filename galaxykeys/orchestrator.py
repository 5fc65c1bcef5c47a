"""
galaxykeys.orchestrator
-----------------------
Drives planner -> generator -> (secret store, artifact) across every slot.

Slots are processed one at a time in planned order, so at most one private
key is in memory and progress is monotonic. A failed slot is handled by the
policy of its tier:

- STRICT: the run halts at that slot; later slots are never attempted and
  slots already written stay in place
- LENIENT: the failure is reported and processing moves on

DeclinedOverwrite is terminal for its slot only, under either tier.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging

from .constants import EXIT_ABORTED, EXIT_OK, EXIT_PLANNING
from .errors import DeclinedOverwrite, GenerationExhausted, PlanningInconsistency, SlotError
from .crypto import get_primitive
from .generator import KeypairGenerator
from .policy import TierPolicy
from .slots import IdentitySlot, NamespaceSpec, TIER_PODS, TIER_ROOT, plan
from .writers import ArtifactWriter, SecretStoreWriter

log = logging.getLogger("GK.Orchestrator")

ProgressFn = Callable[[int, int], None]


class SlotState(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    GEN_FAILED = "gen_failed"
    GENERATED = "generated"
    WRITING = "writing"
    WRITE_FAILED = "write_failed"
    DECLINED = "declined"
    DONE = "done"


class RunState(str, Enum):
    PLANNING = "planning"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class SlotOutcome:
    slot: IdentitySlot
    state: SlotState = SlotState.PENDING
    error: Optional[SlotError] = None

    @property
    def ok(self) -> bool:
        return self.state == SlotState.DONE

    @property
    def error_kind(self) -> str:
        return self.error.kind if self.error else ""


@dataclass
class RunReport:
    state: RunState = RunState.PLANNING
    total: int = 0
    outcomes: List[SlotOutcome] = field(default_factory=list)
    failed_slot: Optional[IdentitySlot] = None
    planning_error: Optional[str] = None

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    def count(self, state: SlotState) -> int:
        return sum(1 for o in self.outcomes if o.state == state)

    @property
    def failures(self) -> List[SlotOutcome]:
        return [o for o in self.outcomes if o.state in (SlotState.GEN_FAILED, SlotState.WRITE_FAILED)]

    @property
    def exit_code(self) -> int:
        if self.state == RunState.COMPLETED:
            return EXIT_OK
        if self.planning_error is not None:
            return EXIT_PLANNING
        return EXIT_ABORTED

    def summary(self) -> str:
        if self.planning_error is not None:
            return f"planning failed: {self.planning_error}"
        parts = [
            f"{self.count(SlotState.DONE)} provisioned",
            f"{self.count(SlotState.DECLINED)} declined",
            f"{len(self.failures)} failed",
        ]
        head = f"{self.state.value}: {self.processed}/{self.total} slots processed ({', '.join(parts)})"
        if self.state == RunState.ABORTED and self.failed_slot is not None:
            failed = self.outcomes[-1]
            head += f"; aborted at {self.failed_slot} [{failed.error_kind}] {failed.error}"
        return head


class Provisioner:
    """
    One provisioning run over one namespace.

    The collaborators are injected, so tests can drive the whole pipeline with
    an in-memory store, a stub primitive and a fixed overwrite policy.
    """

    def __init__(
        self,
        namespace: NamespaceSpec,
        generator: KeypairGenerator,
        secret_writer: SecretStoreWriter,
        artifact_writer: ArtifactWriter,
        tiers: Optional[Dict[str, TierPolicy]] = None,
        on_progress: Optional[ProgressFn] = None,
        audit=None,
    ):
        self.namespace = namespace
        self.generator = generator
        self.secret_writer = secret_writer
        self.artifact_writer = artifact_writer
        self.tiers = {TIER_ROOT: TierPolicy.LENIENT, TIER_PODS: TierPolicy.STRICT}
        self.tiers.update(tiers or {})
        self.on_progress = on_progress
        self.audit = audit

    def run(self) -> RunReport:
        report = RunReport()
        try:
            slots = plan(self.namespace)
        except PlanningInconsistency as exc:
            log.error(f"planning failed for namespace {self.namespace.root!r}: {exc}")
            report.state = RunState.ABORTED
            report.planning_error = str(exc)
            return report

        report.total = len(slots)
        report.state = RunState.PROCESSING
        log.info(f"provisioning {report.total} slots in namespace {self.namespace.root!r}")

        for index, slot in enumerate(slots, start=1):
            log.debug(f"[{index}/{report.total}] provisioning {slot}")
            outcome = self.process(slot)
            report.outcomes.append(outcome)

            if outcome.error is not None:
                tier = self.tiers.get(slot.tier, TierPolicy.STRICT)
                if outcome.error.halts:
                    log.error(f"{slot} failed with {outcome.error_kind}: {outcome.error}")
                    self._audit("slot_failed", slot, kind=outcome.error_kind, tier=tier.value)
                else:
                    log.warning(f"{slot} skipped with {outcome.error_kind}: {outcome.error}")
                    self._audit("slot_declined", slot, kind=outcome.error_kind)
                if outcome.error.halts and tier == TierPolicy.STRICT:
                    report.state = RunState.ABORTED
                    report.failed_slot = slot
                    log.error(f"aborting run at {slot} ({index}/{report.total})")
                    return report
            else:
                self._audit("slot_provisioned", slot)

            self._progress(index, report.total)

        report.state = RunState.COMPLETED
        log.info(report.summary())
        return report

    def process(self, slot: IdentitySlot) -> SlotOutcome:
        outcome = SlotOutcome(slot)

        outcome.state = SlotState.GENERATING
        try:
            keypair = self.generator.generate(slot)
        except GenerationExhausted as exc:
            outcome.state = SlotState.GEN_FAILED
            outcome.error = exc
            return outcome
        outcome.state = SlotState.GENERATED

        with keypair:
            outcome.state = SlotState.WRITING
            try:
                # settle both overwrite questions before either half is written
                self.secret_writer.confirm(slot)
                self.artifact_writer.confirm(slot)
                self.secret_writer.commit(slot, keypair.private_material)
                self.artifact_writer.commit(slot, keypair.public_material)
            except DeclinedOverwrite as exc:
                outcome.state = SlotState.DECLINED
                outcome.error = exc
                return outcome
            except SlotError as exc:
                outcome.state = SlotState.WRITE_FAILED
                outcome.error = exc
                return outcome

        outcome.state = SlotState.DONE
        return outcome

    def _progress(self, index: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(index, total)

    def _audit(self, event_type: str, slot: IdentitySlot, **extra) -> None:
        if self.audit is None:
            return
        payload = {"slot": str(slot), "store_path": slot.store_path, **extra}
        try:
            self.audit.log_event(event_type, payload)
        except Exception as exc:
            log.warning(f"audit write failed for {slot}: {exc}")


def build_provisioner(config, identity, storage, policy, primitive=None, on_progress: Optional[ProgressFn] = None) -> Provisioner:
    """Wire a Provisioner from a ProvisionConfig and its already-opened collaborators."""
    generator = KeypairGenerator(
        primitive=primitive or get_primitive(config.primitive),
        algorithm=config.algorithm,
        bits=config.bits,
        max_attempts=config.max_attempts,
    )
    return Provisioner(
        namespace=config.namespace(),
        generator=generator,
        secret_writer=SecretStoreWriter(storage, identity, policy),
        artifact_writer=ArtifactWriter(config.store_dir, policy),
        tiers=config.tiers(),
        on_progress=on_progress,
        audit=storage,
    )
