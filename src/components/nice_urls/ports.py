"""
Nice URL component port definitions.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Literal, Protocol

from .models import CachedUrl, Rule

CacheDirection = Literal["forward", "inverse"]


class RuleStorePort(Protocol):
    """Repository interface for routing rules."""

    def list_enabled(self) -> list[Rule]:
        """List enabled rules, highest priority first, ties by ascending id."""
        ...

    def list_all(self) -> list[Rule]:
        """List all rules in evaluation order."""
        ...

    def get_by_id(self, rule_id: int) -> Rule | None:
        """Get rule by ID."""
        ...

    def save(self, rule: Rule) -> Rule:
        """Save or update a rule. Assigns an id to new rules."""
        ...

    def delete(self, rule_id: int) -> None:
        """Delete rule."""
        ...


class UrlCachePort(Protocol):
    """Two-way conversion cache."""

    def get(self, direction: CacheDirection, key: str) -> CachedUrl | None:
        ...

    def set(self, direction: CacheDirection, key: str, entry: CachedUrl) -> None:
        ...

    def invalidate_rule(self, rule_id: int) -> int:
        """Drop every entry produced by a rule. Returns count removed."""
        ...

    def clear(self) -> None:
        ...


class LookupPort(Protocol):
    """Single-field table lookup used by the ``db`` conversion strategy."""

    def get_field(
        self,
        table: str,
        output_field: str,
        input_field: str,
        value: str,
    ) -> Any | None:
        """Return ``output_field`` of the row where ``input_field = value``."""
        ...


class ConversionStrategy(Protocol):
    """A named value transformer."""

    def __call__(self, value: str, args: Sequence[str]) -> str | None:
        ...
