"""BuilderChain: An ordered list of steps driven as one step."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, ClassVar

from .context import Context
from .errors import BuildInterrupted
from .steps import BuildStep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepFailure:
    """Which wrapped step failed, and how."""

    index: int
    name: str
    phase: str
    error: Exception | None = None

    def __str__(self) -> str:
        detail = f": {self.error}" if self.error is not None else ""
        return f"step {self.index + 1} ({self.name}) failed in {self.phase}{detail}"


class BuilderChain(BuildStep):
    """Applies the single-step contract to each wrapped step in order.

    The step list is fixed at construction; the chain never reorders,
    filters, or mutates it.
    """

    handles_dry_run: ClassVar[bool] = True

    def __init__(self, steps: Iterable[BuildStep] = ()) -> None:
        self._steps = tuple(steps)

    def __iter__(self) -> Iterator[BuildStep]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def steps(self) -> tuple[BuildStep, ...]:
        return self._steps

    def check(self, ctx: Context) -> StepFailure | None:
        """Run each prebuild in order, stopping at the first one that returns False or raises."""
        for index, buildstep in enumerate(self._steps):
            name = buildstep.display_name
            try:
                ok = buildstep.prebuild(ctx)
            except BuildInterrupted:
                logger.warning("Step %d (%s) interrupted", index + 1, name)
                raise
            except Exception as exc:
                failure = StepFailure(index, name, "prebuild", exc)
                logger.error("Stopping chain: %s", failure)
                return failure

            if not ok:
                failure = StepFailure(index, name, "prebuild")
                logger.error("Stopping chain: %s", failure)
                return failure
        return None

    def run(self, ctx: Context) -> StepFailure | None:
        """Perform each step in order, stopping at the first failure.

        Interrupts propagate without running later steps; completed steps
        are not rolled back. In a dry run only steps that handle dry runs
        themselves are called; the rest are logged.
        """
        for index, buildstep in enumerate(self._steps):
            name = buildstep.display_name
            if ctx.dry_run and not buildstep.handles_dry_run:
                logger.info("[DRY RUN] Would perform %s", name)
                continue

            logger.info("Performing %s", name)
            try:
                ok = buildstep.perform(ctx)
            except BuildInterrupted:
                logger.warning("Step %d (%s) interrupted", index + 1, name)
                raise
            except Exception as exc:
                failure = StepFailure(index, name, "perform", exc)
                logger.error("Stopping chain: %s", failure)
                return failure

            if not ok:
                failure = StepFailure(index, name, "perform")
                logger.error("Stopping chain: %s", failure)
                return failure
        return None

    def prebuild(self, ctx: Context) -> bool:
        return self.check(ctx) is None

    def perform(self, ctx: Context) -> bool:
        return self.run(ctx) is None

    def get_project_actions(self, project: Any) -> list[Any]:
        actions: list[Any] = []
        for buildstep in self._steps:
            actions.extend(buildstep.get_project_actions(project))
        return actions

    def __repr__(self) -> str:
        names = ", ".join(s.display_name for s in self._steps)
        return f"BuilderChain([{names}])"
