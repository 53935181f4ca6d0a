"""
Tests for conversion strategies and the hook registry.
"""

from __future__ import annotations

import threading
from typing import Any

import pytest

from src.components.nice_urls import (
    CORE_HOOKS_MODULE,
    ConverterRegistry,
    HookRegistry,
    register_core_hooks,
)

# --- Mocks ---


class MockLookup:
    """Records lookups and answers from a fixed table."""

    def __init__(self, rows: dict[tuple[str, str, str, str], Any] | None = None) -> None:
        self._rows = rows or {}
        self.calls: list[tuple[str, str, str, str]] = []

    def get_field(self, table: str, output_field: str, input_field: str, value: str) -> Any:
        key = (table, output_field, input_field, value)
        self.calls.append(key)
        return self._rows.get(key)


class FailingLookup:
    def get_field(self, table: str, output_field: str, input_field: str, value: str) -> Any:
        raise ConnectionError("database is gone")


class Courses:
    @staticmethod
    def name(value: str) -> str:
        return f"Course {value}"

    @classmethod
    def code(cls, value: str) -> str:
        return f"{cls.__name__}-{value}"

    @staticmethod
    def _private(value: str) -> str:
        return value

    def instance_method(self, value: str) -> str:
        return value


# --- Fixtures ---


@pytest.fixture
def lookup() -> MockLookup:
    return MockLookup({("course", "id", "shortname", "intro-to-cs"): 42})


@pytest.fixture
def hooks() -> HookRegistry:
    registry = HookRegistry()
    registry.register_type("/local/courses/lib.php", Courses)

    @registry.hook("local/tags")
    def slug(value: str) -> str:
        return value.replace(" ", "-")

    @registry.hook("local/tags", name="missing")
    def missing(value: str) -> None:
        return None

    return registry


@pytest.fixture
def converters(lookup: MockLookup, hooks: HookRegistry) -> ConverterRegistry:
    return ConverterRegistry(lookup=lookup, hooks=hooks, timeout=None)


# --- db Strategy ---


class TestDbStrategy:
    """Test the db lookup strategy."""

    def test_lookup_found(self, converters: ConverterRegistry, lookup: MockLookup) -> None:
        result = converters.convert("db", "intro-to-cs", ["course", "shortname", "id"])

        assert result == "42"
        assert lookup.calls == [("course", "id", "shortname", "intro-to-cs")]

    def test_no_row(self, converters: ConverterRegistry) -> None:
        assert converters.convert("db", "nope", ["course", "shortname", "id"]) is None

    def test_empty_result_is_not_found(self) -> None:
        lookup = MockLookup({("course", "summary", "id", "1"): ""})
        converters = ConverterRegistry(lookup=lookup, timeout=None)

        assert converters.convert("db", "1", ["course", "id", "summary"]) is None

    def test_result_is_returned_as_stored(self) -> None:
        lookup = MockLookup({("course", "fullname", "id", "1"): "Intro & Basics"})
        converters = ConverterRegistry(lookup=lookup, timeout=None)

        assert converters.convert("db", "1", ["course", "id", "fullname"]) == "Intro & Basics"

    @pytest.mark.parametrize(
        "args",
        [
            [],
            ["course", "shortname"],
            ["course", "shortname", "id", "extra"],
        ],
    )
    def test_wrong_arg_count(
        self, converters: ConverterRegistry, lookup: MockLookup, args: list[str]
    ) -> None:
        assert converters.convert("db", "intro-to-cs", args) is None
        assert lookup.calls == []

    def test_invalid_identifier_is_refused(
        self, converters: ConverterRegistry, lookup: MockLookup
    ) -> None:
        args = ["course; DROP TABLE course", "shortname", "id"]

        assert converters.convert("db", "intro-to-cs", args) is None
        assert lookup.calls == []

    def test_no_lookup_configured(self) -> None:
        converters = ConverterRegistry(timeout=None)

        assert converters.convert("db", "x", ["course", "shortname", "id"]) is None

    def test_lookup_exception_becomes_not_found(self) -> None:
        converters = ConverterRegistry(lookup=FailingLookup(), timeout=None)

        assert converters.convert("db", "x", ["course", "shortname", "id"]) is None


# --- hook Strategy ---


class TestHookStrategy:
    """Test the hook strategy."""

    def test_free_function(self, converters: ConverterRegistry) -> None:
        assert converters.convert("hook", "big data", ["local/tags", "slug"]) == "big-data"

    def test_static_method(self, converters: ConverterRegistry) -> None:
        result = converters.convert("hook", "42", ["local/courses/lib.php", "Courses::name"])

        assert result == "Course+42"

    def test_class_method(self, converters: ConverterRegistry) -> None:
        result = converters.convert("hook", "42", ["local/courses/lib.php", "Courses::code"])

        assert result == "Courses-42"

    def test_leading_slash_in_module_is_ignored(self, converters: ConverterRegistry) -> None:
        assert converters.convert("hook", "a b", ["/local/tags", "slug"]) == "a-b"

    def test_unknown_module(self, converters: ConverterRegistry) -> None:
        assert converters.convert("hook", "x", ["local/nowhere", "slug"]) is None

    def test_unknown_callable(self, converters: ConverterRegistry) -> None:
        assert converters.convert("hook", "x", ["local/tags", "nope"]) is None

    def test_none_result_is_not_found(self, converters: ConverterRegistry) -> None:
        assert converters.convert("hook", "x", ["local/tags", "missing"]) is None

    def test_wrong_arg_count(self, converters: ConverterRegistry) -> None:
        assert converters.convert("hook", "x", ["local/tags"]) is None
        assert converters.convert("hook", "x", ["local/tags", "slug", "extra"]) is None

    def test_hook_exception_becomes_not_found(self) -> None:
        hooks = HookRegistry()

        def explode(value: str) -> str:
            raise ValueError("boom")

        hooks.register("local/bad", "explode", explode)
        converters = ConverterRegistry(hooks=hooks, timeout=None)

        assert converters.convert("hook", "x", ["local/bad", "explode"]) is None


class TestHookRegistry:
    """Test HookRegistry registration."""

    def test_register_type_skips_private_and_instance_methods(self, hooks: HookRegistry) -> None:
        assert hooks.resolve("local/courses/lib.php", "Courses::name") is not None
        assert hooks.resolve("local/courses/lib.php", "Courses::_private") is None
        assert hooks.resolve("local/courses/lib.php", "Courses::instance_method") is None

    def test_register_type_with_instance_binds_methods(self) -> None:
        hooks = HookRegistry()

        hooks.register_type("local/courses", Courses(), name="courses")

        assert hooks.resolve("local/courses", "courses::instance_method")("x") == "x"
        assert hooks.resolve("local/courses", "courses::name")("7") == "Course 7"
        assert hooks.resolve("local/courses", "Courses::name") is None

    def test_decorator_returns_function(self) -> None:
        hooks = HookRegistry()

        @hooks.hook("local/x")
        def upper(value: str) -> str:
            return value.upper()

        assert upper("a") == "A"
        assert hooks.resolve("local/x", "upper") is upper

    def test_names(self, hooks: HookRegistry) -> None:
        assert "local/tags:slug" in hooks.names()
        assert "local/courses/lib.php:Courses::code" in hooks.names()


# --- Dispatch ---


class TestDispatch:
    """Test strategy lookup by name."""

    def test_unknown_strategy(self, converters: ConverterRegistry) -> None:
        assert converters.convert("teleport", "x", []) is None

    def test_invalid_strategy_name(self, converters: ConverterRegistry) -> None:
        assert converters.get_strategy("__class__") is None
        assert converters.convert("../db", "x", ["course", "shortname", "id"]) is None

    def test_registered_strategy(self, converters: ConverterRegistry) -> None:
        converters.register("reverse", lambda value, args: value[::-1])

        assert converters.convert("reverse", "abc", []) == "cba"

    def test_names_are_case_insensitive(self, converters: ConverterRegistry) -> None:
        assert converters.convert("DB", "intro-to-cs", ["course", "shortname", "id"]) == "42"

    def test_builtin_wins_over_registered(self, converters: ConverterRegistry) -> None:
        converters.register("db", lambda value, args: "shadowed")

        assert converters.convert("db", "intro-to-cs", ["course", "shortname", "id"]) == "42"


# --- Timeouts ---


class TestTimeout:
    """Test bounded strategy calls."""

    def test_slow_strategy_times_out(self) -> None:
        release = threading.Event()
        converters = ConverterRegistry(timeout=0.05)

        def slow(value: str, args: tuple[str, ...]) -> str:
            release.wait(2)
            return "late"

        converters.register("slow", slow)
        try:
            assert converters.convert("slow", "x", []) is None
        finally:
            release.set()
            converters.shutdown()

    def test_fast_strategy_within_timeout(self, lookup: MockLookup) -> None:
        converters = ConverterRegistry(lookup=lookup, timeout=1.0)
        try:
            assert converters.convert("db", "intro-to-cs", ["course", "shortname", "id"]) == "42"
        finally:
            converters.shutdown()

    def test_exception_in_worker_becomes_not_found(self) -> None:
        converters = ConverterRegistry(lookup=FailingLookup(), timeout=1.0)
        try:
            assert converters.convert("db", "x", ["course", "shortname", "id"]) is None
        finally:
            converters.shutdown()


# --- Core Hooks ---


class TestCoreHooks:
    """Test the built-in core hooks."""

    @pytest.fixture
    def converters(self) -> ConverterRegistry:
        lookup = MockLookup(
            {
                ("course_modules", "module", "id", "71"): 9,
                ("course_modules", "instance", "id", "71"): 3,
                ("modules", "name", "id", "9"): "forum",
                ("forum", "name", "id", "3"): "General news",
            }
        )
        hooks = HookRegistry()
        register_core_hooks(hooks, lookup)
        return ConverterRegistry(lookup=lookup, hooks=hooks, timeout=None)

    def test_course_module_name(self, converters: ConverterRegistry) -> None:
        args = [CORE_HOOKS_MODULE, "core::course_module_name"]

        assert converters.convert("hook", "71", args) == "General+news"

    def test_unknown_course_module(self, converters: ConverterRegistry) -> None:
        args = [CORE_HOOKS_MODULE, "core::course_module_name"]

        assert converters.convert("hook", "72", args) is None
