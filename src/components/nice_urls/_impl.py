"""
UrlRouter - bidirectional nice URL routing.

Converts nice paths (``course/intro-to-cs/syllabus``) to internal URLs
(``https://site/course/view.php?id=42&path=syllabus``) and inverts internal
URLs back to nice ones for link rewriting.

Key behaviors:
- Rules are evaluated highest priority first; the first matching rule is the
  only one tried, even if one of its parameters then fails to resolve
- A failed parameter fails the whole call; partial URLs are never returned
- Inputs are lower-cased and patterns match case-insensitively, both ways
- Inverse placeholders are resolved in ascending numeric order so derived
  values can feed later ones
- Rules with invalid patterns or placeholders never match
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from urllib.parse import quote_plus, unquote_plus

from ._cache import DEFAULT_MAX_ENTRIES, InMemoryUrlCache
from ._converters import DEFAULT_STRATEGY_TIMEOUT, ConverterRegistry
from .models import (
    CachedUrl,
    NiceUrlError,
    ParamKind,
    ParamSpec,
    ResolvedUrl,
    Rule,
    RuleValidationError,
)
from .ports import RuleStorePort, UrlCachePort

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$\{(\d+)\}")

# --- Configuration ---


@dataclass(frozen=True)
class NiceUrlConfig:
    """Nice URL configuration."""

    enabled: bool = True
    caching: bool = True
    # Client-side link rewriting
    inversion: bool = True

    # Fail a rule when a captured group or readable placeholder has no
    # parameter spec, instead of leaving the placeholder untouched
    strict_placeholders: bool = False

    strategy_timeout: float | None = DEFAULT_STRATEGY_TIMEOUT
    cache_max_entries: int = DEFAULT_MAX_ENTRIES


DEFAULT_CONFIG = NiceUrlConfig()


# --- Helpers ---


def normalize_path(path: str) -> str:
    """Normalize a nice path for matching and caching."""
    return path.strip().lstrip("/").lower()


def normalize_url(url: str) -> str:
    """Normalize an internal URL for matching and caching."""
    return url.strip().lower()


def join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def placeholders(text: str) -> list[int]:
    """Sorted, de-duplicated placeholder numbers in ``text``."""
    return sorted({int(n) for n in PLACEHOLDER.findall(text)})


def substitute(text: str, values: Mapping[int, str]) -> str:
    """Replace ``${n}`` with ``values[n]``; unknown numbers are left as is."""

    def replace(match: re.Match[str]) -> str:
        number = int(match.group(1))
        return values[number] if number in values else match.group(0)

    return PLACEHOLDER.sub(replace, text)


def build_inverse_pattern(template: str, base_url: str = "") -> str:
    """
    Derive the regex that recognizes URLs produced by ``template``.

    ``course/${2}.php?id=${1}`` on ``https://site`` becomes::

        ^https://site/course/(?P<g2>.*?)\\.php\\?id=(?P<g1>.*?)\\Z

    Literals are escaped, each placeholder becomes a non-greedy named group
    and a repeated placeholder must capture the same text again.
    """
    full = join_url(base_url, template)
    parts: list[str] = []
    seen: set[int] = set()
    position = 0

    for match in PLACEHOLDER.finditer(full):
        parts.append(re.escape(full[position : match.start()]))
        number = int(match.group(1))
        if number in seen:
            parts.append(f"(?P=g{number})")
        else:
            parts.append(f"(?P<g{number}>.*?)")
            seen.add(number)
        position = match.end()

    parts.append(re.escape(full[position:]))
    return "^" + "".join(parts) + r"\Z"


# --- Validation ---


def _validate_params(
    params: Mapping[int, ParamSpec],
    field_name: str,
) -> list[RuleValidationError]:
    errors: list[RuleValidationError] = []

    for number, spec in params.items():
        if number < 1:
            errors.append(
                RuleValidationError(
                    code="invalid_param_number",
                    message=f"Parameter number must be 1 or more, got {number}",
                    field=field_name,
                )
            )
        if spec.kind is ParamKind.CONVERT and not spec.conversion_name:
            errors.append(
                RuleValidationError(
                    code="missing_conversion",
                    message=f"Parameter {number} is 'convert' but names no conversion",
                    field=field_name,
                )
            )
        if spec.source_group is not None and spec.source_group < 1:
            errors.append(
                RuleValidationError(
                    code="invalid_source_group",
                    message=f"Parameter {number} reads from group {spec.source_group}",
                    field=field_name,
                )
            )

    return errors


def validate_rule(rule: Rule) -> list[RuleValidationError]:
    """Validate a rule's pattern, templates and parameter specs."""
    errors: list[RuleValidationError] = []

    for field_name in ("pattern", "template", "readable"):
        if not getattr(rule, field_name).strip():
            errors.append(
                RuleValidationError(
                    code=f"{field_name}_required",
                    message=f"{field_name.capitalize()} is required",
                    field=field_name,
                )
            )
    if errors:
        return errors

    try:
        group_count = re.compile(rule.pattern, re.IGNORECASE).groups
    except re.error as e:
        errors.append(
            RuleValidationError(
                code="invalid_pattern",
                message=f"Pattern does not compile: {e}",
                field="pattern",
            )
        )
        return errors

    template_numbers = placeholders(rule.template)
    unknown = [n for n in template_numbers if n > group_count]
    if unknown:
        errors.append(
            RuleValidationError(
                code="unknown_group",
                message=f"Template references groups {unknown} but pattern has {group_count}",
                field="template",
            )
        )

    resolvable = set(template_numbers) | set(rule.inverse_params) | set(rule.forward_params)
    unresolvable = [n for n in placeholders(rule.readable) if n not in resolvable]
    if unresolvable:
        errors.append(
            RuleValidationError(
                code="unresolvable_placeholder",
                message=f"Readable placeholders {unresolvable} are neither captured nor derived",
                field="readable",
            )
        )

    errors.extend(_validate_params(rule.forward_params, "forward_params"))
    errors.extend(_validate_params(rule.inverse_params, "inverse_params"))
    return errors


# --- Compiled Rules ---


@dataclass(frozen=True)
class CompiledRule:
    """A validated rule with both of its regexes compiled."""

    rule: Rule
    forward: re.Pattern[str]
    inverse: re.Pattern[str]


def compile_rule(rule: Rule, base_url: str = "") -> CompiledRule | None:
    """Compile a rule, or return None (and log) if it is malformed."""
    errors = validate_rule(rule)
    if errors:
        logger.warning(
            "Rule %s never matches: %s",
            rule.id,
            "; ".join(e.message for e in errors),
        )
        return None

    return CompiledRule(
        rule=rule,
        forward=re.compile(rule.pattern, re.IGNORECASE),
        inverse=re.compile(build_inverse_pattern(rule.template, base_url), re.IGNORECASE),
    )


def _rule_key(rule: Rule) -> tuple[object, ...]:
    return (
        rule.id,
        rule.pattern,
        rule.template,
        rule.readable,
        tuple(sorted(rule.forward_params.items())),
        tuple(sorted(rule.inverse_params.items())),
    )


# --- Router ---


class UrlRouter:
    """
    Nice URL router.

    Reads rules from the injected store on every uncached call; compiled
    patterns are memoized per rule version.
    """

    def __init__(
        self,
        store: RuleStorePort,
        base_url: str = "",
        converters: ConverterRegistry | None = None,
        cache: UrlCachePort | None = None,
        config: NiceUrlConfig | None = None,
    ) -> None:
        """Initialize router."""
        self._store = store
        self._base_url = base_url.rstrip("/")
        self._config = config or DEFAULT_CONFIG
        self._converters = converters or ConverterRegistry(
            timeout=self._config.strategy_timeout
        )
        self._cache: UrlCachePort = (
            cache if cache is not None else InMemoryUrlCache(self._config.cache_max_entries)
        )
        # Rule id -> (rule version key, compiled form); one entry per rule
        self._compiled: dict[int | None, tuple[tuple[object, ...], CompiledRule | None]] = {}
        self._compiled_lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def config(self) -> NiceUrlConfig:
        return self._config

    @property
    def cache(self) -> UrlCachePort:
        return self._cache

    @property
    def converters(self) -> ConverterRegistry:
        return self._converters

    # --- Forward ---

    def convert(self, path: str) -> ResolvedUrl | None:
        """Convert a nice path to an internal URL, or None if no route."""
        resolved, _ = self.resolve(path)
        return resolved

    def resolve(self, path: str) -> tuple[ResolvedUrl | None, list[NiceUrlError]]:
        """
        Convert a nice path to an internal URL.

        Returns:
            Tuple of (resolved, errors). Resolved is None when no rule
            matched or the matching rule could not resolve its parameters.
        """
        key = normalize_path(path)

        if self._config.caching:
            hit = self._cache.get("forward", key)
            if hit is not None:
                return ResolvedUrl(url=hit.url, rule_id=hit.rule_id, cached=True), []

        for compiled in self._enabled_rules():
            match = compiled.forward.search(key)
            if match is None:
                continue

            url = self._apply_forward(compiled.rule, match)
            if isinstance(url, NiceUrlError):
                logger.debug("Rule %s matched %r but failed: %s", compiled.rule.id, key, url)
                return None, [url]

            if self._config.caching:
                self._cache.set("forward", key, CachedUrl(url=url, rule_id=compiled.rule.id))
            return ResolvedUrl(url=url, rule_id=compiled.rule.id), []

        return None, [NiceUrlError(code="no_match", message=f"No rule matches {key!r}")]

    def _apply_forward(
        self,
        rule: Rule,
        match: re.Match[str],
    ) -> str | NiceUrlError:
        values: dict[int, str] = {}

        # Group 0 is the whole match
        for number, value in enumerate(match.groups(), start=1):
            spec = rule.forward_params.get(number)
            if spec is None:
                if self._config.strict_placeholders:
                    return _failure(rule, f"group {number} has no parameter spec")
                continue

            resolved = self._resolve_value(value or "", spec)
            if resolved is None:
                return _failure(rule, f"group {number} ({value!r}) did not resolve")
            values[number] = resolved

        return join_url(self._base_url, substitute(rule.template, values))

    # --- Inverse ---

    def invert(self, url: str) -> ResolvedUrl | None:
        """Convert an internal URL to a nice URL, or None if no route."""
        resolved, _ = self.resolve_inverse(url)
        return resolved

    def resolve_inverse(self, url: str) -> tuple[ResolvedUrl | None, list[NiceUrlError]]:
        """
        Convert an internal URL to a nice URL.

        Only URLs under the router's base URL can match.
        """
        key = normalize_url(url)

        if self._config.caching:
            hit = self._cache.get("inverse", key)
            if hit is not None:
                return ResolvedUrl(url=hit.url, rule_id=hit.rule_id, cached=True), []

        for compiled in self._enabled_rules():
            match = compiled.inverse.match(key)
            if match is None:
                continue

            nice = self._apply_inverse(compiled.rule, match)
            if isinstance(nice, NiceUrlError):
                logger.debug("Rule %s inverted %r but failed: %s", compiled.rule.id, key, nice)
                return None, [nice]

            if self._config.caching:
                self._cache.set("inverse", key, CachedUrl(url=nice, rule_id=compiled.rule.id))
            return ResolvedUrl(url=nice, rule_id=compiled.rule.id), []

        return None, [NiceUrlError(code="no_match", message=f"No rule inverts {key!r}")]

    def _apply_inverse(
        self,
        rule: Rule,
        match: re.Match[str],
    ) -> str | NiceUrlError:
        # Working values keyed by placeholder number; grows as values are derived
        values = {int(name[1:]): unquote_plus(value) for name, value in match.groupdict().items()}
        wanted = placeholders(rule.readable)
        resolved: dict[int, str] = {}

        for number in range(1, max(wanted, default=0) + 1):
            spec = rule.inverse_params.get(number)
            if spec is None:
                spec = rule.forward_params.get(number)
            if spec is None:
                if self._config.strict_placeholders and number in wanted:
                    return _failure(rule, f"placeholder {number} has no parameter spec")
                continue

            source = spec.source_group or number
            if source not in values:
                return _failure(rule, f"placeholder {number} reads missing group {source}")

            value = self._resolve_value(values[source], spec)
            if value is None:
                reason = f"placeholder {number} ({values[source]!r}) did not resolve"
                return _failure(rule, reason)

            resolved[number] = value
            values.setdefault(number, unquote_plus(value))

        return join_url(self._base_url, substitute(rule.readable, resolved))

    def invert_many(self, urls: Iterable[str]) -> dict[str, str]:
        """Invert a batch of URLs; URLs that do not invert are omitted."""
        inverted: dict[str, str] = {}
        for url in urls:
            if url in inverted:
                continue
            resolved = self.invert(url)
            if resolved is not None:
                inverted[url] = resolved.url
        return inverted

    # --- Shared ---

    def invalidate_rule(self, rule_id: int) -> int:
        """Forget everything derived from a rule. Returns cache entries removed."""
        try:
            removed = self._cache.invalidate_rule(rule_id)
        finally:
            with self._compiled_lock:
                self._compiled.pop(rule_id, None)
        logger.info("Invalidated %d cached URLs for rule %s", removed, rule_id)
        return removed

    def _resolve_value(self, value: str, spec: ParamSpec) -> str | None:
        if spec.kind is ParamKind.CONVERT:
            if not spec.conversion_name:
                return None
            return self._converters.convert(spec.conversion_name, value, spec.conversion_args)

        if value == "" and spec.default is not None:
            value = spec.default
        return quote_plus(value)

    def _enabled_rules(self) -> Iterable[CompiledRule]:
        for rule in self._store.list_enabled():
            if not rule.enabled:
                continue
            compiled = self._compile(rule)
            if compiled is not None:
                yield compiled

    def _compile(self, rule: Rule) -> CompiledRule | None:
        key = _rule_key(rule)
        with self._compiled_lock:
            entry = self._compiled.get(rule.id)
        if entry is not None and entry[0] == key:
            return entry[1]

        # A changed rule replaces its previous compiled form
        compiled = compile_rule(rule, self._base_url)
        with self._compiled_lock:
            self._compiled[rule.id] = (key, compiled)
        return compiled


def _failure(rule: Rule, reason: str) -> NiceUrlError:
    return NiceUrlError(code="resolution_failed", message=f"Rule {rule.id}: {reason}")


# --- Factory ---


def create_url_router(
    store: RuleStorePort,
    base_url: str = "",
    converters: ConverterRegistry | None = None,
    cache: UrlCachePort | None = None,
    config: NiceUrlConfig | None = None,
) -> UrlRouter:
    """Create a UrlRouter."""
    return UrlRouter(
        store=store,
        base_url=base_url,
        converters=converters,
        cache=cache,
        config=config,
    )
