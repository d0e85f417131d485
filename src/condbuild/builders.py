"""ConditionalBuilder: A build step wrapping other steps behind a condition."""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Self

from pydantic import BaseModel, model_validator

from .chain import BuilderChain
from .conditions import RunCondition
from .config import decode_condition, decode_runner, decode_steps, encode_condition, encode_runner, encode_step
from .context import Context
from .errors import BuildInterrupted, ConditionEvaluationError
from .graph import DependencyGraph, DependencyMode, DependencyProjector
from .legacy import migrate_legacy_config
from .runners import BuildStepRunner, Outcome, Phase
from .steps import BuildStep, DependencyDeclarer, step

logger = logging.getLogger(__name__)


@step("conditional")
class ConditionalBuilder(BaseModel, BuildStep, DependencyDeclarer):
    """Runs any number of wrapped steps as one unit, controlled by a condition.

    Behaves like a primitive step towards the host: the condition is evaluated
    once per prebuild/perform call and the runner decides whether the chain
    runs, is skipped, or fails the build. The condition and runner are
    consulted in a dry run too; only the wrapped leaf steps are not performed.
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}
    handles_dry_run: ClassVar[bool] = True

    run_condition: RunCondition
    runner: BuildStepRunner
    conditionalbuilders: tuple[BuildStep, ...] = ()
    dependencies: DependencyMode = DependencyMode.CONDITIONAL

    @property
    def display_name(self) -> str:
        return f"{type(self).__name__}({self.run_condition.description})"

    def _chain(self) -> BuilderChain:
        return BuilderChain(self.conditionalbuilders)

    def _evaluate(self, phase: Phase, ctx: Context) -> bool:
        if phase is Phase.PREBUILD:
            return self.run_condition.evaluate_prebuild(ctx)
        return self.run_condition.evaluate(ctx)

    def decide(self, phase: Phase, ctx: Context) -> Outcome:
        """Evaluate the condition and let the runner decide; evaluation errors always fail."""
        description = self.run_condition.description
        try:
            condition_true = self._evaluate(phase, ctx)
        except BuildInterrupted:
            raise
        except ConditionEvaluationError as exc:
            return Outcome.failed(f"condition {description} could not be evaluated: {exc}")
        except Exception as exc:
            return Outcome.failed(f"condition {description} could not be evaluated: {type(exc).__name__}: {exc}")
        logger.debug("Condition %s is %s in %s", description, condition_true, phase)
        return self.runner.decide(phase, condition_true, self._chain(), ctx, condition=description)

    def prebuild(self, ctx: Context) -> bool:
        return self.runner.report(self.decide(Phase.PREBUILD, ctx), ctx)

    def perform(self, ctx: Context) -> bool:
        return self.runner.report(self.decide(Phase.PERFORM, ctx), ctx)

    def get_project_actions(self, project: Any) -> list[Any]:
        return self._chain().get_project_actions(project)

    def build_dependency_graph(self, project: Any, graph: DependencyGraph) -> None:
        projector = DependencyProjector(graph, self.run_condition, self.runner, self.dependencies)
        for buildstep in self.conditionalbuilders:
            if isinstance(buildstep, DependencyDeclarer):
                buildstep.build_dependency_graph(project, projector)

    @classmethod
    def from_config(cls, attrs: dict[str, Any]) -> Self:
        """Build from a persisted block, converting legacy string conditions once."""
        run_condition = migrate_legacy_config(attrs)
        if run_condition is None:
            if "run_condition" not in attrs:
                raise ValueError(f"{cls.__name__} requires a run_condition")
            run_condition = decode_condition(attrs["run_condition"])
        elif "run_condition" in attrs:
            logger.warning("Both legacy and modern conditions configured; using legacy '%s'", attrs["condition"])

        if "runner" not in attrs:
            raise ValueError(f"{cls.__name__} requires a runner")

        return cls(
            run_condition=run_condition,
            runner=decode_runner(attrs["runner"]),
            conditionalbuilders=decode_steps(attrs.get("step")),
            dependencies=attrs.get("dependencies", DependencyMode.CONDITIONAL),
        )

    def to_config(self) -> dict[str, Any]:
        return {
            "runner": encode_runner(self.runner),
            "run_condition": encode_condition(self.run_condition),
            "step": [encode_step(s) for s in self.conditionalbuilders],
            "dependencies": self.dependencies.value,
        }


@step("single_conditional")
class SingleConditionalBuilder(ConditionalBuilder):
    """A ConditionalBuilder wrapping exactly one step."""

    @model_validator(mode="after")
    def check_single_step(self) -> Self:
        if len(self.conditionalbuilders) != 1:
            raise ValueError(f"{type(self).__name__} wraps exactly one step, got {len(self.conditionalbuilders)}")
        return self

    @property
    def buildstep(self) -> BuildStep:
        return self.conditionalbuilders[0]
