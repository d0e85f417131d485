"""HCL loading: Render and parse .hcl job configuration files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import hcl2
import jinja2

from .projects import Project

if TYPE_CHECKING:
    from .workspace import Workspace

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=Project)


def load(
    file: str | Path,
    *,
    context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Render a file as a Jinja2 template, then parse the result as HCL2."""
    file = Path(file)
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        text = env.from_string(file.read_text()).render(context or {})
    except jinja2.TemplateError as exc:
        raise ValueError(f"{file}: {exc}") from exc

    logger.debug("Parsing %s", file)
    try:
        return hcl2.loads(text)
    except Exception as exc:
        raise ValueError(f"{file}: {exc}") from exc


def scan(
    path: str | Path,
    *,
    project_type: type[P] = Project,  # type: ignore[assignment]
    recurse: bool = True,
    context: dict[str, Any] | None = None,
) -> Workspace[P]:
    """Scan a directory for .hcl files and return a ready Workspace."""
    from .workspace import Workspace

    ws = Workspace(project_type=project_type, context=context)
    ws.scan(path, recurse=recurse)
    return ws
