"""
Nice URLs component - map readable paths to internal URLs and back.
"""

from ._cache import DEFAULT_MAX_ENTRIES, InMemoryUrlCache, NullUrlCache
from ._converters import DEFAULT_STRATEGY_TIMEOUT, ConverterRegistry, HookRegistry
from ._hooks import CORE_HOOKS_MODULE, CoreHooks, register_core_hooks
from ._impl import (
    CompiledRule,
    NiceUrlConfig,
    UrlRouter,
    build_inverse_pattern,
    compile_rule,
    create_url_router,
    join_url,
    normalize_path,
    normalize_url,
    placeholders,
    substitute,
    validate_rule,
)
from .component import (
    run,
    run_convert,
    run_delete_rule,
    run_invert,
    run_rewrite,
)
from .models import (
    CachedUrl,
    ConvertInput,
    ConvertOutput,
    DeleteRuleInput,
    DeleteRuleOutput,
    InvertInput,
    NiceUrlError,
    ParamKind,
    ParamMap,
    ParamSpec,
    ResolvedUrl,
    RewriteInput,
    RewriteOutput,
    Rule,
    RuleValidationError,
    params_from_json,
    params_to_json,
)
from .ports import (
    CacheDirection,
    ConversionStrategy,
    LookupPort,
    RuleStorePort,
    UrlCachePort,
)

__all__ = [
    # Entry points
    "run",
    "run_convert",
    "run_delete_rule",
    "run_invert",
    "run_rewrite",
    # Input models
    "ConvertInput",
    "DeleteRuleInput",
    "InvertInput",
    "RewriteInput",
    # Output models
    "CachedUrl",
    "ConvertOutput",
    "DeleteRuleOutput",
    "NiceUrlError",
    "ResolvedUrl",
    "RewriteOutput",
    # Rules
    "ParamKind",
    "ParamMap",
    "ParamSpec",
    "Rule",
    "RuleValidationError",
    "params_from_json",
    "params_to_json",
    # Ports
    "CacheDirection",
    "ConversionStrategy",
    "LookupPort",
    "RuleStorePort",
    "UrlCachePort",
    # _impl re-exports
    "CompiledRule",
    "ConverterRegistry",
    "CORE_HOOKS_MODULE",
    "CoreHooks",
    "DEFAULT_MAX_ENTRIES",
    "DEFAULT_STRATEGY_TIMEOUT",
    "HookRegistry",
    "InMemoryUrlCache",
    "NiceUrlConfig",
    "NullUrlCache",
    "UrlRouter",
    "build_inverse_pattern",
    "compile_rule",
    "create_url_router",
    "join_url",
    "normalize_path",
    "normalize_url",
    "placeholders",
    "register_core_hooks",
    "substitute",
    "validate_rule",
]
