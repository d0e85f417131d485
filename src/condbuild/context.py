"""Runtime execution context for a single build."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import IntEnum
from pathlib import Path
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

P = TypeVar("P")


class BuildResult(IntEnum):
    """Build result, ordered from best to worst."""

    SUCCESS = 0
    UNSTABLE = 1
    FAILURE = 2
    ABORTED = 3


class Context(Generic[P]):
    """Run-scoped state passed through the build chain."""

    def __init__(
        self,
        target: P,
        *,
        build_number: int = 1,
        workspace: Path | None = None,
        env: Mapping[str, str] | None = None,
        dry_run: bool = False,
    ) -> None:
        self.target = target
        self.build_number = build_number
        self.workspace = workspace
        self.env = dict(env or {})
        self.dry_run = dry_run
        self._result = BuildResult.SUCCESS

    @property
    def result(self) -> BuildResult:
        return self._result

    def mark(self, result: BuildResult) -> None:
        """Worsen the build result; a better result never overrides a worse one."""
        if result > self._result:
            logger.debug("Build result %s -> %s", self._result.name, result.name)
            self._result = result

    @property
    def job_name(self) -> str:
        return str(getattr(self.target, "name", self.target))

    def variables(self) -> dict[str, Any]:
        """Return the variables available to token expansion."""
        variables: dict[str, Any] = dict(self.env)
        variables["env"] = dict(self.env)
        variables["BUILD_NUMBER"] = str(self.build_number)
        variables["JOB_NAME"] = self.job_name
        variables["WORKSPACE"] = str(self.workspace) if self.workspace is not None else ""
        return variables
