"""Tests for condbuild.builders."""

from __future__ import annotations

import logging

import pytest

from condbuild.builders import ConditionalBuilder, SingleConditionalBuilder
from condbuild.conditions import AlwaysRun, NeverRun, RunCondition, _condition_registry
from condbuild.context import BuildResult, Context
from condbuild.errors import BuildInterrupted, ConditionEvaluationError, LegacyConversionError
from condbuild.graph import DependencyMode
from condbuild.legacy import LegacyBuildstepCondition
from condbuild.runners import BuildStepRunner, OutcomeStatus, Phase, RunnerKind
from condbuild.steps import BuildStep, _step_registry


class TrackingStep(BuildStep):
    def __init__(self, name="step", prebuild_ok=True, perform_ok=True, interrupt=False):
        self.name = name
        self.prebuild_ok = prebuild_ok
        self.perform_ok = perform_ok
        self.interrupt = interrupt
        self._prebuild_calls = 0
        self._perform_calls = 0

    @property
    def display_name(self) -> str:
        return self.name

    def prebuild(self, ctx: Context) -> bool:
        self._prebuild_calls += 1
        return self.prebuild_ok

    def perform(self, ctx: Context) -> bool:
        self._perform_calls += 1
        if self.interrupt:
            raise BuildInterrupted(self.name)
        return self.perform_ok

    def get_project_actions(self, project):
        return [f"{self.name}-action"]


class FlagCondition(RunCondition):
    """True when the FLAG env var is 'on'."""

    def __init__(self, flag: str = "FLAG"):
        self.flag = flag

    def evaluate(self, ctx: Context) -> bool:
        return ctx.env.get(self.flag) == "on"


class BrokenCondition(RunCondition):
    def evaluate(self, ctx: Context) -> bool:
        raise ConditionEvaluationError("resource unavailable")


class UnreachableCondition(RunCondition):
    def evaluate(self, ctx: Context) -> bool:
        raise OSError("status file missing")


class InterruptingCondition(RunCondition):
    def evaluate(self, ctx: Context) -> bool:
        raise BuildInterrupted("stop")


@pytest.fixture(autouse=True)
def _clean_registry():
    saved_steps = _step_registry.copy()
    saved_conditions = _condition_registry.copy()
    _step_registry["tracking"] = TrackingStep
    _condition_registry["flag"] = FlagCondition
    yield
    _step_registry.clear()
    _step_registry.update(saved_steps)
    _condition_registry.clear()
    _condition_registry.update(saved_conditions)


def _make_ctx(**env) -> Context:
    return Context(target="job", env=env)


def _builder(cond: RunCondition, kind: str = "run", steps=None, **runner_kwargs) -> ConditionalBuilder:
    return ConditionalBuilder(
        run_condition=cond,
        runner=BuildStepRunner(kind=kind, **runner_kwargs),
        conditionalbuilders=steps or [],
    )


class TestConstruction:
    def test_requires_condition(self):
        with pytest.raises(ValueError):
            ConditionalBuilder(runner=BuildStepRunner())

    def test_requires_runner(self):
        with pytest.raises(ValueError):
            ConditionalBuilder(run_condition=AlwaysRun())

    def test_rejects_none_condition(self):
        with pytest.raises(ValueError):
            ConditionalBuilder(run_condition=None, runner=BuildStepRunner())

    def test_empty_chain_is_noop(self):
        b = _builder(AlwaysRun())
        ctx = _make_ctx()
        assert b.conditionalbuilders == ()
        assert b.prebuild(ctx) is True
        assert b.perform(ctx) is True
        assert ctx.result is BuildResult.SUCCESS

    def test_default_dependency_mode(self):
        assert _builder(AlwaysRun()).dependencies is DependencyMode.CONDITIONAL

    def test_is_frozen(self):
        b = _builder(AlwaysRun())
        with pytest.raises(ValueError):
            b.runner = BuildStepRunner(kind="fail")

    def test_steps_fixed_at_construction(self):
        steps = [TrackingStep("a")]
        b = _builder(AlwaysRun(), "run", steps)
        steps.append(TrackingStep("b"))
        assert isinstance(b.conditionalbuilders, tuple)
        assert [s.name for s in b.conditionalbuilders] == ["a"]

    def test_display_name_includes_condition(self):
        assert _builder(NeverRun()).display_name == "ConditionalBuilder(NeverRun)"

    def test_registered_as_step(self):
        assert _step_registry["conditional"] is ConditionalBuilder
        assert _step_registry["single_conditional"] is SingleConditionalBuilder


class TestConditionFalse:
    def test_skip_on_false_runs_nothing(self):
        steps = [TrackingStep("a"), TrackingStep("b")]
        b = _builder(NeverRun(), "run", steps)
        ctx = _make_ctx()
        assert b.prebuild(ctx) is True
        assert b.perform(ctx) is True
        assert all(s._prebuild_calls == 0 and s._perform_calls == 0 for s in steps)
        assert ctx.result is BuildResult.SUCCESS

    def test_fail_on_false_runs_nothing(self):
        steps = [TrackingStep("a")]
        b = _builder(NeverRun(), "fail", steps)
        ctx = _make_ctx()
        assert b.perform(ctx) is False
        assert steps[0]._perform_calls == 0
        assert ctx.result is BuildResult.FAILURE

    def test_fail_reason_names_condition(self):
        outcome = _builder(NeverRun(), "fail").decide(Phase.PERFORM, _make_ctx())
        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.reason == "condition NeverRun was false in perform"

    def test_unstable_on_false(self):
        b = _builder(NeverRun(), "unstable", [TrackingStep()])
        ctx = _make_ctx()
        assert b.perform(ctx) is True
        assert ctx.result is BuildResult.UNSTABLE

    def test_skip_logged(self, caplog):
        b = _builder(NeverRun(), "run", [TrackingStep()])
        with caplog.at_level(logging.INFO, logger="condbuild.runners"):
            b.perform(_make_ctx())
        assert "Skipping steps" in caplog.text


class TestConditionTrue:
    def test_runs_all_steps_in_order(self):
        order: list[str] = []

        class Recording(TrackingStep):
            def perform(self, ctx):
                order.append(self.name)
                return True

        b = _builder(AlwaysRun(), "fail", [Recording("a"), Recording("b"), Recording("c")])
        assert b.perform(_make_ctx()) is True
        assert order == ["a", "b", "c"]

    def test_condition_evaluated_per_build(self):
        s = TrackingStep()
        b = _builder(FlagCondition(), "run", [s])
        b.perform(_make_ctx(FLAG="off"))
        assert s._perform_calls == 0
        b.perform(_make_ctx(FLAG="on"))
        assert s._perform_calls == 1

    def test_prebuild_short_circuits(self):
        s1, s2, s3 = TrackingStep("s1"), TrackingStep("s2", prebuild_ok=False), TrackingStep("s3")
        b = _builder(AlwaysRun(), "run", [s1, s2, s3])
        ctx = _make_ctx()
        assert b.prebuild(ctx) is False
        assert (s1._prebuild_calls, s2._prebuild_calls, s3._prebuild_calls) == (1, 1, 0)
        assert ctx.result is BuildResult.FAILURE

    def test_perform_failure_fails(self):
        s1, s2 = TrackingStep("s1", perform_ok=False), TrackingStep("s2")
        b = _builder(AlwaysRun(), "run", [s1, s2])
        assert b.perform(_make_ctx()) is False
        assert s2._perform_calls == 0

    def test_perform_failure_unstable_policy(self):
        b = _builder(AlwaysRun(), "run", [TrackingStep(perform_ok=False)], on_step_failure="unstable")
        ctx = _make_ctx()
        assert b.perform(ctx) is True
        assert ctx.result is BuildResult.UNSTABLE

    def test_interrupt_propagates(self):
        s1, s2, s3 = TrackingStep("s1"), TrackingStep("s2", interrupt=True), TrackingStep("s3")
        b = _builder(AlwaysRun(), "run", [s1, s2, s3])
        with pytest.raises(BuildInterrupted):
            b.perform(_make_ctx())
        assert s1._perform_calls == 1
        assert s3._perform_calls == 0

    def test_uses_prebuild_evaluation(self):
        class OnlyPrebuild(RunCondition):
            def evaluate(self, ctx):
                return False

            def evaluate_prebuild(self, ctx):
                return True

        s = TrackingStep()
        b = _builder(OnlyPrebuild(), "run", [s])
        ctx = _make_ctx()
        b.prebuild(ctx)
        b.perform(ctx)
        assert s._prebuild_calls == 1
        assert s._perform_calls == 0


class TestEvaluationFailure:
    @pytest.mark.parametrize("kind", list(RunnerKind))
    def test_always_fails_regardless_of_runner(self, kind):
        s = TrackingStep()
        b = _builder(BrokenCondition(), kind, [s])
        ctx = _make_ctx()
        assert b.perform(ctx) is False
        assert s._perform_calls == 0
        assert ctx.result is BuildResult.FAILURE

    def test_prebuild_fails(self):
        b = _builder(BrokenCondition(), "run", [TrackingStep()])
        assert b.prebuild(_make_ctx()) is False

    def test_outcome_names_condition(self):
        b = _builder(BrokenCondition(), "run")
        outcome = b.decide(Phase.PERFORM, _make_ctx())
        assert outcome.status is OutcomeStatus.FAILED
        assert "BrokenCondition" in outcome.reason
        assert "resource unavailable" in outcome.reason

    @pytest.mark.parametrize("phase", list(Phase))
    def test_unexpected_error_fails_in_both_phases(self, phase):
        s = TrackingStep()
        b = _builder(UnreachableCondition(), "run", [s])
        ctx = _make_ctx()
        outcome = b.decide(phase, ctx)
        assert outcome.status is OutcomeStatus.FAILED
        assert "UnreachableCondition" in outcome.reason
        assert "OSError: status file missing" in outcome.reason
        assert b.runner.report(outcome, ctx) is False
        assert ctx.result is BuildResult.FAILURE
        assert s._prebuild_calls == 0
        assert s._perform_calls == 0

    def test_interrupt_from_condition_propagates(self):
        b = _builder(InterruptingCondition(), "run", [TrackingStep()])
        with pytest.raises(BuildInterrupted):
            b.perform(_make_ctx())


class TestProjectActions:
    @pytest.mark.parametrize("cond", [AlwaysRun(), NeverRun()])
    def test_independent_of_condition(self, cond):
        b = _builder(cond, "fail", [TrackingStep("a"), TrackingStep("b")])
        assert b.get_project_actions("proj") == ["a-action", "b-action"]


class TestNesting:
    def test_nested_conditional_skipped(self):
        inner_step = TrackingStep("inner")
        inner = _builder(NeverRun(), "run", [inner_step])
        outer_step = TrackingStep("outer")
        outer = _builder(AlwaysRun(), "run", [inner, outer_step])
        assert outer.perform(_make_ctx()) is True
        assert inner_step._perform_calls == 0
        assert outer_step._perform_calls == 1

    def test_nested_failure_stops_outer(self):
        inner = _builder(NeverRun(), "fail", [TrackingStep("inner")])
        after = TrackingStep("after")
        outer = _builder(AlwaysRun(), "run", [inner, after])
        assert outer.perform(_make_ctx()) is False
        assert after._perform_calls == 0


class TestConfig:
    def test_from_config_modern(self):
        b = ConditionalBuilder.from_config(
            {
                "runner": [{"fail": {}}],
                "run_condition": [{"always": {}}],
                "step": [{"tracking": {"name": "a"}}, {"tracking": {"name": "b"}}],
            }
        )
        assert b.runner.kind is RunnerKind.FAIL
        assert isinstance(b.run_condition, AlwaysRun)
        assert [s.name for s in b.conditionalbuilders] == ["a", "b"]

    def test_from_config_runner_string(self):
        b = ConditionalBuilder.from_config({"runner": "unstable", "run_condition": {"never": {}}})
        assert b.runner.kind is RunnerKind.UNSTABLE

    def test_from_config_dependencies(self):
        b = ConditionalBuilder.from_config(
            {"runner": "run", "run_condition": {"always": {}}, "dependencies": "suppress"}
        )
        assert b.dependencies is DependencyMode.SUPPRESS

    def test_from_config_missing_runner(self):
        with pytest.raises(ValueError, match="runner"):
            ConditionalBuilder.from_config({"run_condition": {"always": {}}})

    def test_from_config_missing_condition(self):
        with pytest.raises(ValueError, match="run_condition"):
            ConditionalBuilder.from_config({"runner": "run"})

    def test_from_config_legacy(self):
        b = ConditionalBuilder.from_config({"runner": "run", "condition": "true", "invert_condition": True})
        assert isinstance(b.run_condition, LegacyBuildstepCondition)
        assert b.run_condition.invert is True

    def test_legacy_wins_over_modern(self, caplog):
        with caplog.at_level(logging.WARNING, logger="condbuild.builders"):
            b = ConditionalBuilder.from_config(
                {"runner": "run", "condition": "false", "run_condition": [{"always": {}}]}
            )
        assert isinstance(b.run_condition, LegacyBuildstepCondition)
        assert "legacy" in caplog.text

    def test_legacy_malformed_is_loud(self):
        with pytest.raises(LegacyConversionError):
            ConditionalBuilder.from_config({"runner": "run", "condition": "perhaps"})

    def test_legacy_true_equivalent_to_always(self):
        legacy = ConditionalBuilder.from_config(
            {"runner": "fail", "condition": "true", "invert_condition": False, "step": [{"tracking": {}}]}
        )
        modern = ConditionalBuilder.from_config(
            {"runner": "fail", "run_condition": [{"always": {}}], "step": [{"tracking": {}}]}
        )
        for b in (legacy, modern):
            ctx = _make_ctx()
            assert b.prebuild(ctx) is True
            assert b.perform(ctx) is True
            assert b.conditionalbuilders[0]._perform_calls == 1

    def test_round_trip(self):
        original = ConditionalBuilder(
            run_condition=FlagCondition("RELEASE"),
            runner=BuildStepRunner(kind="fail", on_step_failure="unstable"),
            conditionalbuilders=[TrackingStep("a"), TrackingStep("b", perform_ok=False)],
            dependencies="suppress",
        )
        reloaded = ConditionalBuilder.from_config(original.to_config())

        assert reloaded.runner == original.runner
        assert reloaded.run_condition.flag == "RELEASE"
        assert [s.name for s in reloaded.conditionalbuilders] == ["a", "b"]
        assert reloaded.dependencies is DependencyMode.SUPPRESS

        for env in ({"RELEASE": "on"}, {"RELEASE": "off"}):
            ctx_a, ctx_b = _make_ctx(**env), _make_ctx(**env)
            assert original.perform(ctx_a) == reloaded.perform(ctx_b)
            assert ctx_a.result is ctx_b.result

    def test_legacy_saved_without_legacy_fields(self):
        b = ConditionalBuilder.from_config({"runner": "run", "condition": "${GO}", "invert_condition": True})
        config = b.to_config()
        assert "condition" not in config
        assert config["run_condition"] == [{"legacy": {"condition": "${GO}", "invert": True}}]

        reloaded = ConditionalBuilder.from_config(config)
        for go in ("true", "false"):
            assert reloaded.run_condition.evaluate(_make_ctx(GO=go)) == b.run_condition.evaluate(_make_ctx(GO=go))

    def test_round_trip_modern_stays_modern(self):
        b = _builder(AlwaysRun(), "run", [TrackingStep()])
        config = b.to_config()
        assert "condition" not in config
        assert config["run_condition"] == [{"always": {}}]

    def test_to_config_unregistered_step(self):
        class Unregistered(TrackingStep):
            pass

        b = _builder(AlwaysRun(), "run", [Unregistered()])
        with pytest.raises(ValueError, match="not a registered step"):
            b.to_config()


class TestSingleConditionalBuilder:
    def test_wraps_one_step(self):
        s = TrackingStep()
        b = SingleConditionalBuilder(run_condition=AlwaysRun(), runner=BuildStepRunner(), conditionalbuilders=[s])
        assert b.buildstep is s
        assert b.perform(_make_ctx()) is True
        assert s._perform_calls == 1

    def test_rejects_multiple_steps(self):
        with pytest.raises(ValueError, match="exactly one"):
            SingleConditionalBuilder(
                run_condition=AlwaysRun(),
                runner=BuildStepRunner(),
                conditionalbuilders=[TrackingStep(), TrackingStep()],
            )

    def test_from_config(self):
        b = SingleConditionalBuilder.from_config(
            {"runner": "run", "run_condition": {"never": {}}, "step": [{"tracking": {"name": "only"}}]}
        )
        assert isinstance(b, SingleConditionalBuilder)
        assert b.buildstep.name == "only"
