"""Rule query functions for reviewcore.

Provides async functions for inserting, reading, filtering, toggling and
deleting Rule records. Visibility restrictions are passed in as SQL
conditions (see ``reviewcore.access.visible_rules``) so they are applied
by the query itself. Callers own the transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import ColumnElement, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reviewcore.database.models.finding import Finding
from reviewcore.database.models.rule import Rule, RuleCategory, Severity
from reviewcore.database.queries.ordering import category_rank, severity_rank

logger = structlog.get_logger(__name__)


async def add_rule(
    session: AsyncSession,
    name: str,
    description: str,
    category: RuleCategory,
    severity: Severity,
    pattern: dict[str, Any] | None = None,
    configuration: dict[str, Any] | None = None,
    created_by_id: UUID | None = None,
    is_custom: bool = False,
    is_enabled: bool = True,
) -> Rule:
    """Insert a rule and flush it.

    The unique index on ``rules.name`` rejects duplicates at flush time
    with an ``IntegrityError``.
    """
    rule = Rule(
        name=name,
        description=description,
        category=category,
        severity=severity,
        pattern=pattern,
        configuration=configuration or {},
        created_by_id=created_by_id,
        is_custom=is_custom,
        is_enabled=is_enabled,
    )
    session.add(rule)
    await session.flush()
    await session.refresh(rule, attribute_names=["created_by"])
    return rule


async def get_rule(
    session: AsyncSession,
    rule_id: UUID,
    conditions: Sequence[ColumnElement[bool]] = (),
) -> Rule | None:
    """Retrieve a rule by ID, subject to extra visibility conditions."""
    stmt = select(Rule).where(Rule.id == rule_id, *conditions)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_rule_by_name(session: AsyncSession, name: str) -> Rule | None:
    """Retrieve a rule by its unique name."""
    result = await session.execute(select(Rule).where(Rule.name == name))
    return result.scalar_one_or_none()


async def find_rules(
    session: AsyncSession,
    conditions: Sequence[ColumnElement[bool]] = (),
    category: RuleCategory | None = None,
    severity: Severity | None = None,
    is_enabled: bool | None = None,
    is_custom: bool | None = None,
    created_by: UUID | None = None,
    search: str | None = None,
) -> list[Rule]:
    """List rules matching the given filters.

    Results are ordered by category ascending, then severity descending
    (most severe first within a category), then name.

    Args:
        session: Active async database session.
        conditions: Extra SQL conditions, e.g. visibility restrictions.
        category: Only rules in this category.
        severity: Only rules with this severity.
        is_enabled: Only enabled (True) or disabled (False) rules.
        is_custom: Only custom (True) or system (False) rules.
        created_by: Only rules created by this user.
        search: Case-insensitive substring of the rule name.

    Returns:
        List of matching Rule instances.
    """
    stmt = select(Rule).where(*conditions)

    if category is not None:
        stmt = stmt.where(Rule.category == category)
    if severity is not None:
        stmt = stmt.where(Rule.severity == severity)
    if is_enabled is not None:
        stmt = stmt.where(Rule.is_enabled.is_(is_enabled))
    if is_custom is not None:
        stmt = stmt.where(Rule.is_custom.is_(is_custom))
    if created_by is not None:
        stmt = stmt.where(Rule.created_by_id == created_by)
    if search:
        stmt = stmt.where(Rule.name.ilike(f"%{search}%"))

    stmt = stmt.order_by(
        category_rank(Rule.category).asc(),
        severity_rank(Rule.severity).desc(),
        Rule.name.asc(),
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def set_rules_enabled(
    session: AsyncSession,
    rule_ids: Sequence[UUID],
    enabled: bool,
) -> int:
    """Set ``is_enabled`` on every listed rule with a single UPDATE.

    Returns:
        Number of rows updated.
    """
    stmt = (
        update(Rule)
        .where(Rule.id.in_(set(rule_ids)))
        .values(is_enabled=enabled)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount


async def delete_rule(session: AsyncSession, rule_id: UUID) -> bool:
    """Delete a rule together with the findings it produced.

    Returns:
        True if the rule existed.
    """
    findings = await session.execute(
        delete(Finding)
        .where(Finding.rule_id == rule_id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        delete(Rule)
        .where(Rule.id == rule_id)
        .execution_options(synchronize_session=False)
    )

    deleted = result.rowcount > 0
    if deleted and findings.rowcount:
        logger.info(
            "rule_findings_deleted",
            rule_id=str(rule_id),
            findings_deleted=findings.rowcount,
        )
    return deleted
