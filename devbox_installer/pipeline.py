from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from .context import ProvisionCtx
from .errors import MutationFailure

logger = logging.getLogger(__name__)


class Precondition(Protocol):
    """A gate evaluated before any mutation. Raises PreconditionUnmet."""

    check_id: str

    def verify(self, ctx: ProvisionCtx) -> str:
        ...


class Step(Protocol):
    """A single idempotent step.

    check() must be side-effect free; apply() must be harmless when check()
    already holds.
    """

    step_id: str
    critical: bool
    verify_after_apply: bool

    def check(self, ctx: ProvisionCtx) -> bool:
        ...

    def apply(self, ctx: ProvisionCtx) -> None:
        ...


class Verification(Protocol):
    """Post-install verification. Raises VerificationFailure."""

    check_id: str

    def verify(self, ctx: ProvisionCtx) -> str:
        ...


@dataclass
class PipelineResult:
    ran_steps: List[str] = field(default_factory=list)
    skipped_steps: List[str] = field(default_factory=list)
    failed_steps: List[str] = field(default_factory=list)
    pending_steps: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "ran_steps": list(self.ran_steps),
            "skipped_steps": list(self.skipped_steps),
            "failed_steps": list(self.failed_steps),
            "pending_steps": list(self.pending_steps),
            "warnings": list(self.warnings),
        }


def run_gates(ctx: ProvisionCtx, gates: Sequence[Precondition]) -> None:
    for gate in gates:
        detail = gate.verify(ctx)
        logger.info("Precondition %s: %s", gate.check_id, detail)


def _window(steps: Sequence[Step], start_at: Optional[str], stop_after: Optional[str]) -> List[Step]:
    ids = [s.step_id for s in steps]
    for wanted in (start_at, stop_after):
        if wanted is not None and wanted not in ids:
            raise ValueError(f"Unknown step id: {wanted} (known: {', '.join(ids)})")

    out: List[Step] = []
    started = start_at is None
    for step in steps:
        if not started:
            if step.step_id != start_at:
                continue
            started = True
        out.append(step)
        if stop_after is not None and step.step_id == stop_after:
            break
    return out


def run_pipeline(
    ctx: ProvisionCtx,
    *,
    gates: Sequence[Precondition] = (),
    steps: Sequence[Step],
    verifications: Sequence[Verification] = (),
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    check_only: bool = False,
) -> PipelineResult:
    """Run gates, then steps in order, then verifications.

    Gates always run first and abort before any mutation. A failing critical
    step raises MutationFailure; a failing non-critical step is logged and
    the run continues. With check_only, nothing is applied and unsatisfied
    steps are reported as pending.
    """

    selected = _window(steps, start_at, stop_after)
    run_gates(ctx, gates)

    result = PipelineResult()
    warnings_before = len(ctx.warnings)

    for step in selected:
        if step.check(ctx):
            logger.info("%s: already configured", step.step_id)
            result.skipped_steps.append(step.step_id)
            continue

        if check_only:
            logger.info("%s: pending", step.step_id)
            result.pending_steps.append(step.step_id)
            continue

        logger.info("%s: applying", step.step_id)
        try:
            step.apply(ctx)
            if step.verify_after_apply and not ctx.dry_run and not step.check(ctx):
                raise RuntimeError("still unsatisfied after apply")
        except Exception as e:
            result.failed_steps.append(step.step_id)
            if step.critical:
                raise MutationFailure(step.step_id, str(e)) from e
            ctx.warn(step.step_id, f"non-critical step failed, continuing: {e}")
            continue

        result.ran_steps.append(step.step_id)

    if not check_only:
        for v in verifications:
            if ctx.dry_run:
                logger.info("Would verify %s", v.check_id)
                continue
            detail = v.verify(ctx)
            logger.info("Verified %s: %s", v.check_id, detail)

    result.warnings = ctx.warnings[warnings_before:]
    return result
