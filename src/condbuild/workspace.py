"""Workspace: A typed collection of projects loaded from configuration."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any, TypeVar, overload

from . import hcl
from .config import decode_steps
from .graph import DependencyGraph
from .projects import Project

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=Project)


def _build_project(
    name: str,
    data: dict[str, Any],
    *,
    project_type: type[P] = Project,  # type: ignore[assignment]
) -> P:
    """Build a single Project instance from parsed data."""
    logger.debug("Building project '%s' as %s", name, project_type.__name__)
    proj_kwargs: dict[str, Any] = {"name": name, "builders": decode_steps(data.get("step"))}

    # Pass through non-structural fields
    for key, value in data.items():
        if key != "step":
            proj_kwargs[key] = value

    return project_type(**proj_kwargs)


class Workspace(Mapping[str, P]):
    """Accumulates parsed project blocks and builds projects on access."""

    def __init__(
        self,
        project_type: type[P] = Project,  # type: ignore[assignment]
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._project_type = project_type
        self._context = context
        self._pending: dict[str, dict[str, Any]] = {}

    def add(self, data: dict[str, Any]) -> None:
        """Register the project blocks of a parsed configuration dict.

        Raises ValueError if a project name is already loaded.
        """
        for proj_block in data.get("project", []):
            for proj_name, proj_data in proj_block.items():
                if proj_name in self._pending:
                    raise ValueError(f"Duplicate project: '{proj_name}'")
                logger.debug("Found project '%s'", proj_name)
                self._pending[proj_name] = proj_data

    def load(self, path: str | Path) -> None:
        """Load a single .hcl file into the workspace."""
        self.add(hcl.load(path, context=self._context))

    def scan(self, path: str | Path, *, recurse: bool = True) -> None:
        """Load every .hcl file under a directory, in sorted order."""
        root = Path(path)
        files = sorted(root.rglob("*.hcl") if recurse else root.glob("*.hcl"))
        logger.debug("Scanning %s: %d file(s)", root, len(files))
        for file in files:
            self.load(file)

    def _resolve(self) -> dict[str, P]:
        logger.debug("Resolving %d project(s)", len(self._pending))
        return {
            name: _build_project(name, data, project_type=self._project_type)
            for name, data in self._pending.items()
        }

    def dependency_graph(self) -> DependencyGraph:
        """Build one dependency graph across all projects."""
        graph = DependencyGraph()
        for project in self._resolve().values():
            project.build_dependency_graph(graph)
        return graph

    def __getitem__(self, name: str) -> P:
        return self._resolve()[name]

    def __contains__(self, name: object) -> bool:
        return name in self._pending

    def __iter__(self) -> Iterator[str]:
        return iter(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    @overload
    def get(self, name: str) -> P | None: ...
    @overload
    def get(self, name: str, default: P) -> P: ...
    @overload
    def get(self, name: str, default: None) -> P | None: ...
    def get(self, name: str, default: Any = None) -> P | None:
        return self._resolve().get(name, default)

    def filter(self, names: Iterable[str]) -> list[P]:
        """Return projects matching the given names, preserving input order."""
        resolved = self._resolve()
        return [p for n in names if (p := resolved.get(n)) is not None]

    def __repr__(self) -> str:
        return f"Workspace(project_type={self._project_type.__name__}, projects={len(self._pending)})"
