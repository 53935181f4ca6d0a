import importlib
import logging
import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from src.adapters.sqlite.repos import SQLiteLookup, SQLiteRuleRepo
from src.components.nice_urls import (
    ConverterRegistry,
    HookRegistry,
    InMemoryUrlCache,
    NiceUrlConfig,
    NullUrlCache,
    UrlCachePort,
    UrlRouter,
    register_core_hooks,
)

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float | None) -> float | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    seconds = float(value)
    return seconds if seconds > 0 else None


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("NICE_URLS_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "nice_urls.db")
        self.migrations_dir = str(self.base_dir / "migrations")
        self.base_url = os.environ.get("NICE_URLS_BASE_URL", "http://localhost:8000").rstrip("/")
        rules_path = os.environ.get("NICE_URLS_RULES_PATH")
        self.rules_path = Path(rules_path) if rules_path else None
        self.debug = _env_flag("NICE_URLS_DEBUG", False)
        # Comma-separated "package.module:function" hook registration functions
        self.hook_plugins = [
            target.strip()
            for target in os.environ.get("NICE_URLS_HOOKS", "").split(",")
            if target.strip()
        ]
        self.config = NiceUrlConfig(
            enabled=_env_flag("NICE_URLS_ENABLED", True),
            caching=_env_flag("NICE_URLS_CACHING", True),
            inversion=_env_flag("NICE_URLS_INVERSION", True),
            strict_placeholders=_env_flag("NICE_URLS_STRICT", False),
            strategy_timeout=_env_float("NICE_URLS_STRATEGY_TIMEOUT", 5.0),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Repos ---
def get_rule_repo(settings: Settings = Depends(get_settings)) -> SQLiteRuleRepo:
    return SQLiteRuleRepo(settings.db_path)


# --- Shared state ---
# These outlive requests; hooks are registered at startup.
_hook_registry = HookRegistry()
_cache_instance: UrlCachePort | None = None
_converters_instance: ConverterRegistry | None = None
_router_instance: UrlRouter | None = None


def get_hook_registry() -> HookRegistry:
    """Get hook registry singleton."""
    return _hook_registry


def register_hooks(registry: HookRegistry, settings: Settings) -> None:
    """
    Register the built-in core hooks and every configured hook plugin.

    Each plugin is a ``package.module:function`` taking the registry. Import
    or registration errors propagate so a bad plugin fails startup.
    """
    register_core_hooks(registry, SQLiteLookup(settings.db_path))

    for target in settings.hook_plugins:
        module_name, _, func_name = target.partition(":")
        register = getattr(importlib.import_module(module_name), func_name or "register_hooks")
        register(registry)
        logger.info("Registered hooks from %s", target)


def get_url_cache(settings: Settings = Depends(get_settings)) -> UrlCachePort:
    """Get URL cache singleton."""
    global _cache_instance
    if _cache_instance is None:
        if settings.config.caching:
            _cache_instance = InMemoryUrlCache(settings.config.cache_max_entries)
        else:
            _cache_instance = NullUrlCache()
    return _cache_instance


def get_converters(settings: Settings = Depends(get_settings)) -> ConverterRegistry:
    """Get conversion strategy registry singleton."""
    global _converters_instance
    if _converters_instance is None:
        _converters_instance = ConverterRegistry(
            lookup=SQLiteLookup(settings.db_path),
            hooks=_hook_registry,
            timeout=settings.config.strategy_timeout,
        )
    return _converters_instance


def reset_shared_state() -> None:
    """Drop the hook, cache, converter and router singletons - useful for testing."""
    global _hook_registry, _cache_instance, _converters_instance, _router_instance
    if _converters_instance is not None:
        _converters_instance.shutdown()
    _hook_registry = HookRegistry()
    _cache_instance = None
    _converters_instance = None
    _router_instance = None


# --- Component Services ---


def get_url_router(
    settings: Settings = Depends(get_settings),
    repo: SQLiteRuleRepo = Depends(get_rule_repo),
    converters: ConverterRegistry = Depends(get_converters),
    cache: UrlCachePort = Depends(get_url_cache),
) -> UrlRouter:
    """Get nice URL router singleton (compiled rules are memoized on it)."""
    global _router_instance
    if _router_instance is None:
        _router_instance = UrlRouter(
            store=repo,
            base_url=settings.base_url,
            converters=converters,
            cache=cache,
            config=settings.config,
        )
    return _router_instance
