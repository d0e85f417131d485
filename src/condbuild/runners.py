"""BuildStepRunner: What happens when a condition is false or a step fails."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel

from .chain import BuilderChain, StepFailure
from .context import BuildResult, Context

logger = logging.getLogger(__name__)


class Phase(StrEnum):
    PREBUILD = "prebuild"
    PERFORM = "perform"


class Verdict(StrEnum):
    """Decision for one (phase, condition value) cell."""

    DELEGATE = "delegate"
    SKIP = "skip"
    SKIP_NEUTRAL = "skip_neutral"
    FAIL = "fail"


class OutcomeStatus(StrEnum):
    EXECUTED = "executed"
    SKIPPED_SUCCESS = "skipped_success"
    SKIPPED_NEUTRAL = "skipped_neutral"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Aggregate result of one prebuild or perform call."""

    status: OutcomeStatus
    success: bool = True
    reason: str = ""
    failure: StepFailure | None = None

    @classmethod
    def executed(cls, failure: StepFailure | None) -> Outcome:
        if failure is None:
            return cls(OutcomeStatus.EXECUTED)
        return cls(OutcomeStatus.EXECUTED, success=False, reason=str(failure), failure=failure)

    @classmethod
    def failed(cls, reason: str) -> Outcome:
        return cls(OutcomeStatus.FAILED, success=False, reason=reason)


class RunnerKind(StrEnum):
    RUN = "run"
    FAIL = "fail"
    UNSTABLE = "unstable"


class StepFailurePolicy(StrEnum):
    FAIL = "fail"
    UNSTABLE = "unstable"


class BuildStepRunner(BaseModel):
    """A named policy mapping (condition value, chain) to an outcome.

    `run`      -- condition false: skip, report success.
    `fail`     -- condition false: fail the build (at perform, or also at
                  prebuild when `fail_at_prebuild` is set).
    `unstable` -- condition false: skip, mark the build unstable.

    A true condition always delegates to the chain; `on_step_failure`
    decides whether a failed chain fails the build or only marks it
    unstable.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    kind: RunnerKind = RunnerKind.RUN
    on_step_failure: StepFailurePolicy = StepFailurePolicy.FAIL
    fail_at_prebuild: bool = False

    def verdict(self, phase: Phase, condition_true: bool) -> Verdict:
        if condition_true:
            return Verdict.DELEGATE
        if self.kind is RunnerKind.FAIL:
            if phase is Phase.PERFORM or self.fail_at_prebuild:
                return Verdict.FAIL
            return Verdict.SKIP
        if self.kind is RunnerKind.UNSTABLE and phase is Phase.PERFORM:
            return Verdict.SKIP_NEUTRAL
        return Verdict.SKIP

    @property
    def may_skip(self) -> bool:
        """This policy can keep the chain from performing."""
        return self.verdict(Phase.PERFORM, False) is not Verdict.DELEGATE

    def decide(
        self,
        phase: Phase,
        condition_true: bool,
        chain: BuilderChain,
        ctx: Context,
        *,
        condition: str = "",
    ) -> Outcome:
        """Apply the verdict for this cell; `condition` names the condition in skip and failure reasons."""
        verdict = self.verdict(phase, condition_true)
        logger.debug("Runner '%s' %s: condition=%s -> %s", self.kind, phase, condition_true, verdict)

        if verdict is Verdict.DELEGATE:
            if phase is Phase.PREBUILD:
                return Outcome.executed(chain.check(ctx))
            return Outcome.executed(chain.run(ctx))
        subject = f"condition {condition}" if condition else "condition"
        if verdict is Verdict.SKIP:
            return Outcome(OutcomeStatus.SKIPPED_SUCCESS, reason=f"{subject} was false")
        if verdict is Verdict.SKIP_NEUTRAL:
            return Outcome(OutcomeStatus.SKIPPED_NEUTRAL, reason=f"{subject} was false")
        return Outcome.failed(f"{subject} was false in {phase}")

    def report(self, outcome: Outcome, ctx: Context) -> bool:
        """Map an outcome onto the boolean step contract, updating the build result."""
        match outcome.status:
            case OutcomeStatus.SKIPPED_SUCCESS:
                logger.info("Skipping steps: %s", outcome.reason)
                return True
            case OutcomeStatus.SKIPPED_NEUTRAL:
                logger.warning("Skipping steps and marking build unstable: %s", outcome.reason)
                ctx.mark(BuildResult.UNSTABLE)
                return True
            case OutcomeStatus.FAILED:
                logger.error("Failing build: %s", outcome.reason)
                ctx.mark(BuildResult.FAILURE)
                return False

        if outcome.success:
            return True
        failed_in_perform = outcome.failure is not None and outcome.failure.phase == Phase.PERFORM
        if failed_in_perform and self.on_step_failure is StepFailurePolicy.UNSTABLE:
            logger.warning("Marking build unstable: %s", outcome.reason)
            ctx.mark(BuildResult.UNSTABLE)
            return True
        ctx.mark(BuildResult.FAILURE)
        return False

    def prebuild(self, condition_true: bool, chain: BuilderChain, ctx: Context) -> bool:
        return self.report(self.decide(Phase.PREBUILD, condition_true, chain, ctx), ctx)

    def perform(self, condition_true: bool, chain: BuilderChain, ctx: Context) -> bool:
        return self.report(self.decide(Phase.PERFORM, condition_true, chain, ctx), ctx)
