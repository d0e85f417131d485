"""Legacy string conditions, kept for loading old configurations."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .conditions import RunCondition, condition
from .context import Context
from .errors import ConditionEvaluationError, LegacyConversionError
from .resolve import Resolver, references

logger = logging.getLogger(__name__)

_BOOLEANS = {"true": True, "false": False, "": False}


def _parse_bool(text: str) -> bool | None:
    return _BOOLEANS.get(text.strip().lower())


@condition("legacy")
class LegacyBuildstepCondition(RunCondition):
    """A token-expanded boolean string, optionally inverted."""

    def __init__(self, condition: str, invert: bool = False) -> None:
        self.condition = condition
        self.invert = invert

    @property
    def description(self) -> str:
        prefix = "not " if self.invert else ""
        return f"{prefix}'{self.condition}'"

    def evaluate(self, ctx: Context) -> bool:
        try:
            expanded = Resolver(ctx.variables()).expand(self.condition)
        except ValueError as exc:
            raise ConditionEvaluationError(f"legacy condition '{self.condition}': {exc}") from exc

        value = _parse_bool(expanded)
        if value is None:
            raise ConditionEvaluationError(
                f"legacy condition '{self.condition}' expanded to non-boolean '{expanded}'"
            )
        logger.debug("Legacy condition '%s' -> '%s' (invert=%s)", self.condition, expanded, self.invert)
        return value != self.invert


def migrate_legacy_config(raw: Mapping[str, Any]) -> RunCondition | None:
    """Convert legacy `condition`/`invert_condition` fields into a RunCondition.

    Returns None when no legacy condition is present. A value that was never
    a valid legacy encoding raises LegacyConversionError; no default is ever
    substituted.
    """
    text = raw.get("condition")
    if text is None:
        return None
    if not isinstance(text, str):
        raise LegacyConversionError(f"Legacy condition must be a string, got {type(text).__name__}")

    invert = raw.get("invert_condition", False)
    if not isinstance(invert, bool):
        raise LegacyConversionError(f"Legacy invert_condition must be a boolean, got {invert!r}")

    try:
        names = references(text)
    except ValueError as exc:
        raise LegacyConversionError(f"Malformed legacy condition '{text}': {exc}") from exc

    if not names and _parse_bool(text.replace("$${", "${")) is None:
        raise LegacyConversionError(f"Unrecognized legacy condition: '{text}'")

    logger.debug("Migrating legacy condition '%s' (invert=%s)", text, invert)
    return LegacyBuildstepCondition(text, invert)
