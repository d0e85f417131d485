"""Dependency graph and the projector that makes wrapped dependencies conditional."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum

from .conditions import RunCondition
from .context import Context
from .runners import BuildStepRunner, Phase, Verdict

logger = logging.getLogger(__name__)


class DependencyMode(StrEnum):
    """How edges declared under a skippable runner reach the real graph."""

    CONDITIONAL = "conditional"
    SUPPRESS = "suppress"


@dataclass(frozen=True)
class Dependency:
    """An edge saying a build of `upstream` should trigger `downstream`."""

    upstream: str
    downstream: str

    @property
    def conditional(self) -> bool:
        return False

    def should_trigger(self, ctx: Context) -> bool:
        return True


@dataclass(frozen=True, kw_only=True)
class ConditionalDependency(Dependency):
    """Wraps a dependency so it only triggers when the runner would have performed.

    The condition is checked against the upstream build at trigger time, never
    while the graph is being built.
    """

    inner: Dependency
    run_condition: RunCondition
    runner: BuildStepRunner

    @classmethod
    def wrap(cls, dep: Dependency, run_condition: RunCondition, runner: BuildStepRunner) -> ConditionalDependency:
        return cls(
            upstream=dep.upstream,
            downstream=dep.downstream,
            inner=dep,
            run_condition=run_condition,
            runner=runner,
        )

    @property
    def conditional(self) -> bool:
        return True

    def should_trigger(self, ctx: Context) -> bool:
        try:
            condition_true = self.run_condition.evaluate(ctx)
        except Exception as exc:
            logger.error(
                "Not triggering '%s' from '%s'; condition %s failed: %s",
                self.downstream,
                self.upstream,
                self.run_condition.description,
                exc,
            )
            return False
        if self.runner.verdict(Phase.PERFORM, condition_true) is not Verdict.DELEGATE:
            logger.info("Not triggering '%s'; condition %s is false", self.downstream, self.run_condition.description)
            return False
        return self.inner.should_trigger(ctx)


class DependencyGraph:
    """In-memory record of which jobs trigger which other jobs."""

    def __init__(self) -> None:
        self._edges: list[Dependency] = []

    def add_dependency(self, dep: Dependency) -> None:
        logger.debug("Adding dependency %s -> %s", dep.upstream, dep.downstream)
        self._edges.append(dep)

    def __iter__(self) -> Iterator[Dependency]:
        return iter(self._edges)

    def __len__(self) -> int:
        return len(self._edges)

    def get_downstream(self, name: str) -> list[Dependency]:
        return [d for d in self._edges if d.upstream == name]

    def get_upstream(self, name: str) -> list[Dependency]:
        return [d for d in self._edges if d.downstream == name]

    def triggered_by(self, name: str, ctx: Context) -> list[str]:
        """Return the downstream jobs a finished build of `name` should trigger."""
        return [d.downstream for d in self.get_downstream(name) if d.should_trigger(ctx)]


class DependencyProjector(DependencyGraph):
    """Stands in for the real graph while wrapped steps declare dependencies.

    The decision is made from the runner's policy alone: if the runner can
    never skip the chain, edges pass through unchanged; otherwise they are
    wrapped as conditional or dropped, according to `mode`.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        run_condition: RunCondition,
        runner: BuildStepRunner,
        mode: DependencyMode = DependencyMode.CONDITIONAL,
    ) -> None:
        self._graph = graph
        self._run_condition = run_condition
        self._runner = runner
        self._mode = mode

    def add_dependency(self, dep: Dependency) -> None:
        if not self._runner.may_skip:
            self._graph.add_dependency(dep)
        elif self._mode is DependencyMode.SUPPRESS:
            logger.info(
                "Suppressing dependency %s -> %s; runner '%s' may skip it",
                dep.upstream,
                dep.downstream,
                self._runner.kind,
            )
        else:
            self._graph.add_dependency(ConditionalDependency.wrap(dep, self._run_condition, self._runner))

    def __iter__(self) -> Iterator[Dependency]:
        return iter(self._graph)

    def __len__(self) -> int:
        return len(self._graph)

    def get_downstream(self, name: str) -> list[Dependency]:
        return self._graph.get_downstream(name)

    def get_upstream(self, name: str) -> list[Dependency]:
        return self._graph.get_upstream(name)
