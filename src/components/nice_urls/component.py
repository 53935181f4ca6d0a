"""
Nice URL component - entry points for routing, link rewriting and rule deletion.

Every outer layer (HTTP routes, CLI) goes through these functions so the
enabled/inversion switches and the delete-then-invalidate contract are
applied in one place.
"""

from __future__ import annotations

from ._impl import UrlRouter
from .models import (
    ConvertInput,
    ConvertOutput,
    DeleteRuleInput,
    DeleteRuleOutput,
    InvertInput,
    NiceUrlError,
    RewriteInput,
    RewriteOutput,
)
from .ports import RuleStorePort

_DISABLED = NiceUrlError(code="disabled", message="Nice URLs are disabled")
_INVERSION_DISABLED = NiceUrlError(code="inversion_disabled", message="URL inversion is disabled")


def run_convert(inp: ConvertInput, *, router: UrlRouter) -> ConvertOutput:
    """
    Convert a nice path to an internal URL.

    Args:
        inp: Input containing the nice path.
        router: Configured router.

    Returns:
        ConvertOutput with the URL, or errors explaining why there is none.
    """
    if not router.config.enabled:
        return ConvertOutput(url=None, errors=[_DISABLED], success=False)

    resolved, errors = router.resolve(inp.path)
    if resolved is None:
        return ConvertOutput(url=None, errors=errors, success=False)
    return ConvertOutput(url=resolved.url, rule_id=resolved.rule_id)


def run_invert(inp: InvertInput, *, router: UrlRouter) -> ConvertOutput:
    """Convert an internal URL to a nice URL."""
    if not router.config.enabled:
        return ConvertOutput(url=None, errors=[_DISABLED], success=False)

    resolved, errors = router.resolve_inverse(inp.url)
    if resolved is None:
        return ConvertOutput(url=None, errors=errors, success=False)
    return ConvertOutput(url=resolved.url, rule_id=resolved.rule_id)


def run_rewrite(inp: RewriteInput, *, router: UrlRouter) -> RewriteOutput:
    """
    Rewrite a batch of internal URLs scraped from a page.

    URLs that do not invert are left out of the mapping. With the
    component or inversion switched off the mapping is empty.
    """
    if not router.config.enabled:
        return RewriteOutput(errors=[_DISABLED])
    if not router.config.inversion:
        return RewriteOutput(errors=[_INVERSION_DISABLED])

    return RewriteOutput(urls=router.invert_many(inp.urls))


def run_delete_rule(
    inp: DeleteRuleInput,
    *,
    store: RuleStorePort,
    router: UrlRouter,
) -> DeleteRuleOutput:
    """Delete a rule and drop every cached URL it produced."""
    if store.get_by_id(inp.rule_id) is None:
        return DeleteRuleOutput(
            deleted=False,
            errors=[NiceUrlError(code="not_found", message=f"Rule {inp.rule_id} not found")],
            success=False,
        )

    store.delete(inp.rule_id)
    invalidated = router.invalidate_rule(inp.rule_id)
    return DeleteRuleOutput(deleted=True, invalidated=invalidated)


def run(inp: ConvertInput, *, router: UrlRouter) -> ConvertOutput:
    """
    Main entry point for the nice URL component.

    Resolves a nice path to the internal URL that should be loaded.
    """
    return run_convert(inp, router=router)
