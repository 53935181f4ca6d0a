"""
Admin Rules API Routes.

Thin endpoints for listing, creating and deleting nice URL rules.
Deleting a rule always invalidates the URLs cached from it.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.api.deps import get_rule_repo, get_url_router
from src.components.nice_urls import (
    DeleteRuleInput,
    Rule,
    RuleStorePort,
    RuleValidationError,
    UrlRouter,
    params_to_json,
    run_delete_rule,
    validate_rule,
)
from src.rules.models import RuleDefinition

router = APIRouter()


class RuleResponse(BaseModel):
    """Rule response."""

    id: int
    pattern: str
    template: str
    readable: str
    forward_params: dict[str, Any]
    inverse_params: dict[str, Any]
    enabled: bool
    priority: float
    notes: str | None = None


class RuleListResponse(BaseModel):
    """List of rules response."""

    rules: list[RuleResponse]
    count: int


class DeleteRuleResponse(BaseModel):
    """Delete rule response."""

    deleted: bool
    invalidated: int


class ValidationErrorResponse(BaseModel):
    """Validation error response."""

    errors: list[dict[str, Any]]


# --- Helper Functions ---


def _rule_to_response(rule: Rule) -> RuleResponse:
    """Convert Rule to response model."""
    assert rule.id is not None
    return RuleResponse(
        id=rule.id,
        pattern=rule.pattern,
        template=rule.template,
        readable=rule.readable,
        forward_params=params_to_json(rule.forward_params),
        inverse_params=params_to_json(rule.inverse_params),
        enabled=rule.enabled,
        priority=rule.priority,
        notes=rule.notes,
    )


def _serialize_errors(
    errors: list[RuleValidationError],
) -> list[dict[str, Any]]:
    """Serialize validation errors."""
    return [
        {
            "code": e.code,
            "message": e.message,
            "field": e.field,
        }
        for e in errors
    ]


# --- Routes ---


@router.get("/rules", response_model=RuleListResponse)
def list_rules(
    repo: RuleStorePort = Depends(get_rule_repo),
) -> RuleListResponse:
    """List all rules in evaluation order."""
    rules = repo.list_all()
    return RuleListResponse(
        rules=[_rule_to_response(r) for r in rules],
        count=len(rules),
    )


@router.post(
    "/rules",
    response_model=RuleResponse,
    status_code=201,
    responses={400: {"model": ValidationErrorResponse}},
)
def create_rule(
    request: RuleDefinition,
    repo: RuleStorePort = Depends(get_rule_repo),
) -> RuleResponse:
    """Create a rule after validating its pattern and placeholders."""
    rule = request.to_rule()

    errors = validate_rule(rule)
    if errors:
        raise HTTPException(
            status_code=400,
            detail={"errors": _serialize_errors(errors)},
        )

    return _rule_to_response(repo.save(rule))


@router.get(
    "/rules/{rule_id}",
    response_model=RuleResponse,
    responses={404: {"description": "Rule not found"}},
)
def get_rule(
    rule_id: int,
    repo: RuleStorePort = Depends(get_rule_repo),
) -> RuleResponse:
    """Get a rule by ID."""
    rule = repo.get_by_id(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return _rule_to_response(rule)


@router.delete(
    "/rules/{rule_id}",
    response_model=DeleteRuleResponse,
    responses={404: {"description": "Rule not found"}},
)
def delete_rule(
    rule_id: int,
    repo: RuleStorePort = Depends(get_rule_repo),
    url_router: UrlRouter = Depends(get_url_router),
) -> DeleteRuleResponse:
    """Delete a rule and invalidate its cached URLs."""
    result = run_delete_rule(DeleteRuleInput(rule_id=rule_id), store=repo, router=url_router)
    if not result.success:
        raise HTTPException(status_code=404, detail="Rule not found")
    return DeleteRuleResponse(deleted=result.deleted, invalidated=result.invalidated)
