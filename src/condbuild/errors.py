"""Exceptions raised by the conditional build engine."""

from __future__ import annotations


class ConditionEvaluationError(Exception):
    """A run condition could not be evaluated (distinct from evaluating false)."""


class LegacyConversionError(ValueError):
    """A legacy string condition could not be converted at load time."""


class BuildInterrupted(Exception):
    """Raised by a step to abort the build; never treated as a step failure."""
