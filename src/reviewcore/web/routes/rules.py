"""Rule endpoints for reviewcore.

Administrators see and manage every rule. Other users see custom rules
only and may change the ones they created.

Routes:
    POST   /rules
    GET    /rules
    PATCH  /rules/bulk
    GET    /rules/{rule_id}
    PUT    /rules/{rule_id}
    DELETE /rules/{rule_id}
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status

from reviewcore.access import Principal
from reviewcore.context import ServiceContext
from reviewcore.database.models.rule import RuleCategory, Severity
from reviewcore.logging import get_logger
from reviewcore.rules.store import RuleDraft, RuleFilter, RulePatch
from reviewcore.web.deps import get_context, get_principal
from reviewcore.web.schemas import (
    RuleBulkUpdate,
    RuleBulkUpdateResponse,
    RuleCreate,
    RuleResponse,
    RuleUpdate,
)

logger = get_logger(__name__)


def create_rules_router() -> APIRouter:
    """Create the rules router."""
    router = APIRouter(prefix="/rules", tags=["rules"])

    @router.post("", response_model=RuleResponse, status_code=http_status.HTTP_201_CREATED)
    async def create_rule(
        body: RuleCreate,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> RuleResponse:
        """Create a custom rule owned by the caller."""
        rule = await context.rules.create_rule(RuleDraft(**body.model_dump()), creator=principal)
        return RuleResponse.model_validate(rule)

    @router.get("", response_model=list[RuleResponse])
    async def list_rules(
        category: RuleCategory | None = None,
        severity: Severity | None = None,
        is_enabled: bool | None = Query(default=None, alias="isEnabled"),
        is_custom: bool | None = Query(default=None, alias="isCustom"),
        created_by: UUID | None = Query(default=None, alias="createdBy"),
        search: str | None = Query(default=None, max_length=255),
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> list[RuleResponse]:
        filters = RuleFilter(
            category=category,
            severity=severity,
            is_enabled=is_enabled,
            is_custom=is_custom,
            created_by=created_by,
            search=search,
        )
        rules = await context.rules.list_rules(principal, filters)
        return [RuleResponse.model_validate(r) for r in rules]

    @router.patch("/bulk", response_model=RuleBulkUpdateResponse)
    async def bulk_update_rules(
        body: RuleBulkUpdate,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> RuleBulkUpdateResponse:
        """Enable or disable several rules in one transaction."""
        rules = await context.rules.bulk_set_enabled(body.rule_ids, body.is_enabled, principal)
        return RuleBulkUpdateResponse(
            updated_count=len(rules),
            rules=[RuleResponse.model_validate(r) for r in rules],
        )

    @router.get("/{rule_id}", response_model=RuleResponse)
    async def get_rule(
        rule_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> RuleResponse:
        rule = await context.rules.get_rule(rule_id, principal)
        return RuleResponse.model_validate(rule)

    @router.put("/{rule_id}", response_model=RuleResponse)
    async def update_rule(
        rule_id: UUID,
        body: RuleUpdate,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> RuleResponse:
        patch = RulePatch(**body.model_dump(exclude_unset=True))
        rule = await context.rules.update_rule(rule_id, patch, principal)
        return RuleResponse.model_validate(rule)

    @router.delete("/{rule_id}", status_code=http_status.HTTP_204_NO_CONTENT)
    async def delete_rule(
        rule_id: UUID,
        principal: Principal = Depends(get_principal),  # noqa: B008
        context: ServiceContext = Depends(get_context),  # noqa: B008
    ) -> None:
        await context.rules.delete_rule(rule_id, principal)
        logger.info("rule_deleted_via_api", rule_id=str(rule_id))

    return router
