"""Project model: The job whose build steps are executed."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from .chain import BuilderChain
from .context import BuildResult, Context
from .errors import BuildInterrupted
from .graph import DependencyGraph
from .steps import BuildStep, DependencyDeclarer

logger = logging.getLogger(__name__)


class Project(BaseModel):
    """Base model that apps subclass with domain-specific fields."""

    model_config = {"arbitrary_types_allowed": True}

    name: str
    description: str = ""
    builders: list[BuildStep] = Field(default_factory=list)

    def build(self, **kwargs) -> Context:
        """Run a prebuild pass over all builders, then perform them in order.

        kwargs are passed to Context. Returns the finished context.
        """
        ctx = Context(target=self, **kwargs)
        chain = BuilderChain(self.builders)
        logger.info("Building project '%s' #%d", self.name, ctx.build_number)

        try:
            if chain.check(ctx) is not None or chain.run(ctx) is not None:
                ctx.mark(BuildResult.FAILURE)
        except BuildInterrupted:
            ctx.mark(BuildResult.ABORTED)
            raise

        logger.info("Project '%s' #%d finished: %s", self.name, ctx.build_number, ctx.result.name)
        return ctx

    def get_project_actions(self) -> list[Any]:
        return BuilderChain(self.builders).get_project_actions(self)

    def build_dependency_graph(self, graph: DependencyGraph) -> None:
        for buildstep in self.builders:
            if isinstance(buildstep, DependencyDeclarer):
                buildstep.build_dependency_graph(self, graph)
