"""
Built-in hooks for core site entities.

Registered under the ``core`` module reference, so a rule addresses them as
``hook: [core, core::course_module_name]``.
"""

from __future__ import annotations

from ._converters import HookRegistry
from .ports import LookupPort

CORE_HOOKS_MODULE = "core"


class CoreHooks:
    """Hooks answered from the site's own tables through a lookup adapter."""

    def __init__(self, lookup: LookupPort) -> None:
        self._lookup = lookup

    def course_module_name(self, cmid: str) -> str | None:
        """
        Activity name for a course-module id, or None.

        A course module points at its activity type in ``modules`` and at the
        activity row via ``instance``; the type's name is the activity table.
        """
        module_id = self._lookup.get_field("course_modules", "module", "id", cmid)
        instance = self._lookup.get_field("course_modules", "instance", "id", cmid)
        if module_id is None or instance is None:
            return None

        activity_table = self._lookup.get_field("modules", "name", "id", str(module_id))
        if not activity_table:
            return None

        name = self._lookup.get_field(str(activity_table), "name", "id", str(instance))
        return None if name is None else str(name)


def register_core_hooks(registry: HookRegistry, lookup: LookupPort) -> None:
    registry.register_type(CORE_HOOKS_MODULE, CoreHooks(lookup), name="core")
