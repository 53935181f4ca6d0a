"""
Nice URL component models.

Rules, parameter specs, cache entries and the input/output models used by
the component entry points.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# --- Parameter Specs ---


class ParamKind(str, Enum):
    """How a captured value is turned into a substitution string."""

    PLAIN = "plain"
    CONVERT = "convert"


@dataclass(frozen=True)
class ParamSpec:
    """Resolution policy for one placeholder number."""

    kind: ParamKind = ParamKind.PLAIN
    default: str | None = None
    source_group: int | None = None
    conversion_name: str | None = None
    conversion_args: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "default": self.default,
            "source_group": self.source_group,
            "conversion": self.conversion_name,
            "args": list(self.conversion_args),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ParamSpec:
        """Build a spec from its stored form.

        Accepts both the mapping form written by ``to_dict`` and the legacy
        ``{"type": ..., "data": [name, *args], "use": n}`` form.
        """
        # Any kind other than convert resolves as plain
        raw_kind = str(data.get("kind") or data.get("type") or "plain").lower()
        kind = ParamKind.CONVERT if raw_kind == ParamKind.CONVERT.value else ParamKind.PLAIN

        name = data.get("conversion")
        args = data.get("args")
        legacy_data = data.get("data")
        if name is None and legacy_data:
            name, *args = legacy_data

        source = data.get("source_group", data.get("use"))
        default = data.get("default")

        return cls(
            kind=kind,
            default=None if default is None else str(default),
            source_group=None if source in (None, "") else int(source),
            conversion_name=None if name is None else str(name),
            conversion_args=tuple(str(a) for a in (args or ())),
        )


ParamMap = dict[int, ParamSpec]


def params_from_json(data: Any) -> ParamMap:
    """Parse a stored params collection (mapping or legacy list) into a ParamMap."""
    if not data:
        return {}

    if isinstance(data, Mapping):
        return {int(number): ParamSpec.from_dict(spec) for number, spec in data.items()}

    # Legacy list form: each entry carries its own group number as "id"
    return {int(entry["id"]): ParamSpec.from_dict(entry) for entry in data}


def params_to_json(params: Mapping[int, ParamSpec]) -> dict[str, Any]:
    return {str(number): spec.to_dict() for number, spec in sorted(params.items())}


# --- Rule Model ---


@dataclass(frozen=True)
class Rule:
    """A routing rule mapping a nice path pattern to an internal URL template."""

    id: int | None
    pattern: str  # e.g. "^course/([a-z0-9-]+)/?(.*)$"
    template: str  # e.g. "course/view.php?id=${1}"
    readable: str  # e.g. "course/${1}/${2}"
    forward_params: ParamMap = field(default_factory=dict)
    inverse_params: ParamMap = field(default_factory=dict)
    enabled: bool = True
    priority: float = 0.0
    notes: str | None = None


# --- Cache Entry ---


@dataclass(frozen=True)
class CachedUrl:
    """A resolved URL tagged with the rule that produced it."""

    url: str
    rule_id: int | None


@dataclass(frozen=True)
class ResolvedUrl:
    """Successful conversion or inversion result."""

    url: str
    rule_id: int | None
    cached: bool = False


# --- Errors ---


@dataclass(frozen=True)
class RuleValidationError:
    """Rule validation error."""

    code: str
    message: str
    field: str | None = None


@dataclass(frozen=True)
class NiceUrlError:
    """Diagnostic for a failed conversion."""

    code: str
    message: str


# --- Input Models ---


@dataclass(frozen=True)
class ConvertInput:
    """Input for converting a nice path to an internal URL."""

    path: str


@dataclass(frozen=True)
class InvertInput:
    """Input for converting an internal URL to a nice URL."""

    url: str


@dataclass(frozen=True)
class RewriteInput:
    """Input for rewriting a batch of internal URLs."""

    urls: tuple[str, ...]


@dataclass(frozen=True)
class DeleteRuleInput:
    """Input for deleting a rule."""

    rule_id: int


# --- Output Models ---


@dataclass(frozen=True)
class ConvertOutput:
    """Output for a single conversion in either direction."""

    url: str | None
    rule_id: int | None = None
    errors: list[NiceUrlError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class RewriteOutput:
    """Output for a batch rewrite: original URL -> nice URL."""

    urls: dict[str, str] = field(default_factory=dict)
    errors: list[NiceUrlError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class DeleteRuleOutput:
    """Output for rule deletion."""

    deleted: bool
    invalidated: int = 0
    errors: list[NiceUrlError] = field(default_factory=list)
    success: bool = True
