"""BuildStep ABC, dependency declaration, and step registration."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Self

from .context import Context

if TYPE_CHECKING:
    from .graph import DependencyGraph

_step_registry: dict[str, type] = {}


def step(name: str):
    """Register a BuildStep class as a configuration block decoder."""

    def decorator(cls):
        _step_registry[name] = cls
        return cls

    return decorator


class BuildStep(ABC):
    """Base class for a single unit of build work.

    Steps that set `handles_dry_run` are performed during a dry run and must
    check `ctx.dry_run` themselves; other steps are only logged.
    """

    handles_dry_run: ClassVar[bool] = False

    def prebuild(self, ctx: Context) -> bool:
        """Validate before any step performs (defaults to True)."""
        return True

    @abstractmethod
    def perform(self, ctx: Context) -> bool:
        """Run the step; False or an exception marks it failed."""

    def get_project_actions(self, project: Any) -> list[Any]:
        """Actions this step contributes to its project."""
        return []

    @property
    def display_name(self) -> str:
        return type(self).__name__

    def to_config(self) -> dict[str, Any]:
        """Return the attributes needed to recreate this step."""
        return {k: v for k, v in vars(self).items() if not k.startswith("_")}

    @classmethod
    def from_config(cls, attrs: dict[str, Any]) -> Self:
        return cls(**attrs)


class DependencyDeclarer(ABC):
    """A step that adds edges to the host's dependency graph."""

    @abstractmethod
    def build_dependency_graph(self, project: Any, graph: DependencyGraph) -> None:
        """Declare this step's dependencies on graph."""
