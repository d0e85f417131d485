"""Resolver: Expand ${...} tokens in legacy condition strings."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"\$\$\{|(\$\{([^{}]*)\})")
_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*")


def references(text: str) -> list[str]:
    """Return the names referenced by ${...} tokens in text.

    Raises ValueError for a malformed token (empty, invalid name, or unclosed).
    """
    names: list[str] = []
    for m in _TOKEN_PATTERN.finditer(text):
        if m.group(0) == "$${":
            continue
        ref = m.group(2).strip()
        if not _NAME_PATTERN.fullmatch(ref):
            raise ValueError(f"invalid token '{m.group(1)}'")
        names.append(ref)

    # anything left that still opens a token was never closed
    leftover = _TOKEN_PATTERN.sub("", text)
    if "${" in leftover:
        raise ValueError(f"unterminated token in '{text}'")
    return names


class Resolver:
    """Expand ${NAME} and dotted ${a.b} tokens against a variable mapping."""

    def __init__(self, variables: Mapping[str, Any] | None = None) -> None:
        self._variables = variables or {}

    def _resolve_ref(self, ref: str) -> Any:
        current: Any = self._variables
        for part in ref.split("."):
            try:
                current = current[part]
            except (KeyError, TypeError):
                try:
                    current = getattr(current, part)
                except AttributeError:
                    raise ValueError(f"undefined variable '{ref}'") from None
        return current

    def expand(self, text: str) -> str:
        """Replace every token in text with its stringified value. Use $${...} for a literal ${...}."""
        if "${" not in text:
            return text

        def _replace(m: re.Match) -> str:  # type: ignore[type-arg]
            if m.group(0) == "$${":
                return "${"
            value = self._resolve_ref(m.group(2).strip())
            logger.debug("Expanded token '%s'", m.group(1))
            return str(value)

        return _TOKEN_PATTERN.sub(_replace, text)
