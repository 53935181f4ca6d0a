from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.components.nice_urls import ParamKind, ParamSpec, Rule


class ParamDefinition(BaseModel):
    kind: Literal["plain", "convert"] = "plain"
    default: str | None = None
    source_group: int | None = Field(default=None, ge=1)
    conversion: str | None = None
    args: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("default", mode="before")
    @classmethod
    def _default_as_text(cls, value: Any) -> Any:
        # YAML reads `default: 1` as an int
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @model_validator(mode="after")
    def _conversion_named(self) -> "ParamDefinition":
        if self.kind == "convert" and not self.conversion:
            raise ValueError("convert parameters must name a conversion")
        return self

    def to_spec(self) -> ParamSpec:
        return ParamSpec(
            kind=ParamKind(self.kind),
            default=self.default,
            source_group=self.source_group,
            conversion_name=self.conversion,
            conversion_args=tuple(self.args),
        )


def _legacy_params(value: Any) -> Any:
    """Accept the exported list form: [{id, type, data: [name, *args], default, use}]."""
    if not isinstance(value, list):
        return value

    params: dict[int, dict[str, Any]] = {}
    for entry in value:
        data = list(entry.get("data") or [])
        default = entry.get("default")
        params[int(entry["id"])] = {
            "kind": str(entry.get("type", "plain")).lower(),
            "default": None if default is None else str(default),
            "source_group": entry.get("use"),
            "conversion": data[0] if data else None,
            "args": [str(a) for a in data[1:]],
        }
    return params


class RuleDefinition(BaseModel):
    pattern: str = Field(min_length=1)
    template: str = Field(min_length=1)
    readable: str = Field(min_length=1)
    forward_params: dict[int, ParamDefinition] = Field(default_factory=dict)
    inverse_params: dict[int, ParamDefinition] = Field(default_factory=dict)
    enabled: bool = True
    priority: float = 0.0
    notes: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("forward_params", "inverse_params", mode="before")
    @classmethod
    def _accept_legacy_params(cls, value: Any) -> Any:
        return _legacy_params(value)

    def to_rule(self) -> Rule:
        return Rule(
            id=None,
            pattern=self.pattern,
            template=self.template,
            readable=self.readable,
            forward_params={n: p.to_spec() for n, p in self.forward_params.items()},
            inverse_params={n: p.to_spec() for n, p in self.inverse_params.items()},
            enabled=self.enabled,
            priority=self.priority,
            notes=self.notes,
        )


class RuleFile(BaseModel):
    schema_version: Literal[1] = 1
    rules: list[RuleDefinition] = Field(default_factory=list)
