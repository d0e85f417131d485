"""RunCondition ABC and condition registration."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Self

from .context import Context

logger = logging.getLogger(__name__)

_condition_registry: dict[str, type[RunCondition]] = {}


def condition(name: str):
    """Register a RunCondition class under a configuration name."""

    def decorator(cls):
        _condition_registry[name] = cls
        return cls

    return decorator


class RunCondition(ABC):
    """Predicate over a build context deciding whether wrapped steps should run.

    Implementations must not keep per-build state; everything specific to a
    run comes from the context. Raise ConditionEvaluationError when the
    answer cannot be computed rather than returning False.
    """

    @abstractmethod
    def evaluate(self, ctx: Context) -> bool:
        """Condition holds for this build."""

    def evaluate_prebuild(self, ctx: Context) -> bool:
        """Condition holds during the validation pass (defaults to evaluate)."""
        return self.evaluate(ctx)

    @property
    def description(self) -> str:
        return type(self).__name__

    def to_config(self) -> dict[str, Any]:
        """Return the attributes needed to recreate this condition."""
        return {k: v for k, v in vars(self).items() if not k.startswith("_")}

    @classmethod
    def from_config(cls, attrs: dict[str, Any]) -> Self:
        return cls(**attrs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_config()!r})"


@condition("always")
class AlwaysRun(RunCondition):
    """Always true."""

    def evaluate(self, ctx: Context) -> bool:
        return True

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AlwaysRun)

    def __hash__(self) -> int:
        return hash(AlwaysRun)


@condition("never")
class NeverRun(RunCondition):
    """Always false."""

    def evaluate(self, ctx: Context) -> bool:
        return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, NeverRun)

    def __hash__(self) -> int:
        return hash(NeverRun)
