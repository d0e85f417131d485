"""Decode and encode persisted configuration blocks.

Blocks follow the HCL2 structure produced by python-hcl2, so a configuration
can come from an .hcl file or an equivalent dict:

    {"runner": [{"fail": {"on_step_failure": "unstable"}}],
     "run_condition": [{"always": {}}],
     "step": [{"echo": {"message": "hi"}}, ...]}
"""

from __future__ import annotations

import logging
from typing import Any

from .conditions import RunCondition, _condition_registry
from .runners import BuildStepRunner, RunnerKind
from .steps import BuildStep, _step_registry

logger = logging.getLogger(__name__)


def _single_block(value: Any, what: str) -> tuple[str, dict[str, Any]]:
    """Unpack a labelled block given as {"label": {attrs}} or [{"label": {attrs}}]."""
    if isinstance(value, list):
        if len(value) != 1:
            raise ValueError(f"Expected exactly one {what} block, found {len(value)}")
        value = value[0]
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError(f"Malformed {what} block: {value!r}")
    ((label, attrs),) = value.items()
    return label, dict(attrs or {})


def _kind_of(obj: object, registry: dict[str, type], what: str) -> str:
    for name, cls in registry.items():
        if type(obj) is cls:
            return name
    raise ValueError(f"{type(obj).__name__} is not a registered {what} type")


def decode_condition(block: Any) -> RunCondition:
    """Decode a run_condition block into a RunCondition instance using the registry."""
    name, attrs = _single_block(block, "run_condition")
    if name not in _condition_registry:
        raise ValueError(f"Unknown condition type: '{name}'")
    cls = _condition_registry[name]
    logger.debug("Decoding condition '%s' -> %s", name, cls.__name__)
    return cls.from_config(attrs)


def encode_condition(cond: RunCondition) -> list[dict[str, Any]]:
    return [{_kind_of(cond, _condition_registry, "condition"): cond.to_config()}]


def decode_runner(value: Any) -> BuildStepRunner:
    """Decode `runner = "kind"` or a `runner "kind" { ... }` block."""
    if isinstance(value, str):
        name, attrs = value, {}
    else:
        name, attrs = _single_block(value, "runner")
    try:
        kind = RunnerKind(name)
    except ValueError:
        raise ValueError(f"Unknown runner type: '{name}'") from None
    return BuildStepRunner(kind=kind, **attrs)


def encode_runner(runner: BuildStepRunner) -> list[dict[str, Any]]:
    attrs = runner.model_dump(mode="json", exclude={"kind"}, exclude_defaults=True)
    return [{runner.kind.value: attrs}]


def decode_step(block: Any) -> BuildStep:
    """Decode a single step block into a BuildStep instance using the registry."""
    name, attrs = _single_block(block, "step")
    if name not in _step_registry:
        raise ValueError(f"Unknown step type: '{name}'")
    cls = _step_registry[name]
    logger.debug("Decoding step '%s' -> %s", name, cls.__name__)
    return cls.from_config(attrs)


def decode_steps(blocks: list[Any] | None) -> list[BuildStep]:
    """Decode step blocks, preserving their order."""
    return [decode_step(block) for block in blocks or []]


def encode_step(buildstep: BuildStep) -> dict[str, Any]:
    return {_kind_of(buildstep, _step_registry, "step"): buildstep.to_config()}
