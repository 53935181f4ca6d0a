"""
Conversion strategies for captured URL values.

A parameter of kind ``convert`` names a strategy and its static arguments,
e.g. ``db: [course, shortname, id]`` or ``hook: [core, Courses::name]``.
Strategy ``x`` resolves to the method ``convert_x`` or, failing that, to a
strategy registered under ``x``.

Every strategy returns the substitution string or None. Unknown strategies,
bad argument counts, lookups with no row, exceptions and timeouts all come
back as None so a single bad rule never breaks routing as a whole.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, TypeVar
from urllib.parse import quote_plus

from .ports import ConversionStrategy, LookupPort

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY_TIMEOUT = 5.0

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

HookFunc = Callable[[str], Any]
F = TypeVar("F", bound=HookFunc)


def _module_key(module: str) -> str:
    # "/mod/forum/lib.php" and "mod/forum/lib.php" name the same unit
    return module.strip().strip("/")


class HookRegistry:
    """
    Callables that ``hook`` conversions may invoke.

    Hooks are registered at startup under a module reference and a name.
    Static and class methods of a type are addressed as ``Type::method``.
    Nothing is imported or loaded while routing.
    """

    def __init__(self) -> None:
        self._hooks: dict[tuple[str, str], HookFunc] = {}

    def register(self, module: str, name: str, func: HookFunc) -> None:
        """Register a free function under ``module``/``name``."""
        self._hooks[(_module_key(module), name)] = func

    def hook(self, module: str, name: str | None = None) -> Callable[[F], F]:
        """Decorator form of ``register``; defaults to the function's name."""

        def decorator(func: F) -> F:
            self.register(module, name or func.__name__, func)
            return func

        return decorator

    def register_type(self, module: str, target: Any, name: str | None = None) -> None:
        """
        Register the public methods of a type as ``Type::method``.

        For a class, only static and class methods are registered. For an
        instance, its bound methods are registered as well. ``name``
        overrides the ``Type`` prefix.
        """
        cls = target if isinstance(target, type) else type(target)
        prefix = name or cls.__name__
        for attr, raw in vars(cls).items():
            if attr.startswith("_"):
                continue
            bound = not isinstance(target, type) and callable(raw)
            if bound or isinstance(raw, (staticmethod, classmethod)):
                self.register(module, f"{prefix}::{attr}", getattr(target, attr))

    def has_module(self, module: str) -> bool:
        key = _module_key(module)
        return any(registered == key for registered, _ in self._hooks)

    def resolve(self, module: str, name: str) -> HookFunc | None:
        return self._hooks.get((_module_key(module), name.strip()))

    def names(self) -> list[str]:
        return sorted(f"{module}:{name}" for module, name in self._hooks)


class ConverterRegistry:
    """
    Dispatches ``convert`` parameters to strategies.

    Calls run on a shared worker pool and are abandoned after ``timeout``
    seconds (None disables the bound and calls inline).
    """

    def __init__(
        self,
        lookup: LookupPort | None = None,
        hooks: HookRegistry | None = None,
        timeout: float | None = DEFAULT_STRATEGY_TIMEOUT,
        max_workers: int = 4,
    ) -> None:
        self._lookup = lookup
        self._hooks = hooks if hooks is not None else HookRegistry()
        self._timeout = timeout
        self._max_workers = max_workers
        self._strategies: dict[str, ConversionStrategy] = {}
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    def register(self, name: str, strategy: ConversionStrategy) -> None:
        """Register an additional strategy by name."""
        self._strategies[name.lower()] = strategy

    def get_strategy(self, name: str) -> ConversionStrategy | None:
        name = name.strip().lower()
        if not _IDENTIFIER.match(name):
            return None
        method = getattr(self, f"convert_{name}", None)
        if method is not None:
            return method  # type: ignore[no-any-return]
        return self._strategies.get(name)

    def convert(self, name: str, value: str, args: Sequence[str]) -> str | None:
        """Run strategy ``name`` on ``value``. Never raises."""
        strategy = self.get_strategy(name)
        if strategy is None:
            logger.info("Unknown conversion strategy %r", name)
            return None

        try:
            return self._call(strategy, value, tuple(args))
        except TimeoutError:
            logger.warning(
                "Conversion %r timed out after %ss for value %r", name, self._timeout, value
            )
        except Exception:
            logger.warning("Conversion %r failed for value %r", name, value, exc_info=True)
        return None

    def shutdown(self) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

    def _call(self, strategy: ConversionStrategy, value: str, args: tuple[str, ...]) -> str | None:
        if not self._timeout:
            return strategy(value, args)

        future = self._get_executor().submit(strategy, value, args)
        try:
            return future.result(timeout=self._timeout)
        except FuturesTimeoutError:
            future.cancel()
            raise TimeoutError(f"conversion exceeded {self._timeout}s") from None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="nice-url-convert",
                )
            return self._executor

    # --- Built-in strategies ---

    def convert_db(self, value: str, args: Sequence[str]) -> str | None:
        """Look up ``output_field`` in ``table`` where ``input_field = value``."""
        # Exactly: table, input field, output field
        if len(args) != 3:
            return None

        table, input_field, output_field = args
        if not all(_IDENTIFIER.match(part) for part in args):
            logger.warning("Refusing db conversion with invalid identifiers %r", list(args))
            return None

        if self._lookup is None:
            logger.warning("db conversion requested but no lookup adapter is configured")
            return None

        # Stored values are substituted as-is; only hook results are encoded
        result = self._lookup.get_field(table, output_field, input_field, value)
        if result is None or result == "":
            return None
        return str(result)

    def convert_hook(self, value: str, args: Sequence[str]) -> str | None:
        """Call a registered hook with ``value``."""
        # Exactly: module reference, function or Type::method
        if len(args) != 2:
            return None

        module, func_name = args
        if not self._hooks.has_module(module):
            logger.info("Hook module %r is not registered", module)
            return None

        func = self._hooks.resolve(module, func_name)
        if func is None:
            logger.info("Hook %r is not registered in module %r", func_name, module)
            return None

        result = func(value)
        if result is None:
            return None
        return quote_plus(str(result))
