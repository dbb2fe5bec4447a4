"""Rule storage for reviewcore.

``RuleStore`` owns every write to the rule catalogue. Rules come in two
kinds:

- system rules (``is_custom=False``) are seeded at install time and can
  only be changed by administrators;
- custom rules are created by users and can be changed by their creator or
  an administrator.

Rule names are unique across both kinds. Uniqueness is checked before each
write so the caller gets a field error, and is guaranteed by the unique
index on ``rules.name`` when two writers race past the check.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.access import Principal, can_mutate_rule, visible_rules
from reviewcore.database.models.rule import Rule, RuleCategory, Severity
from reviewcore.database.queries import rule as rule_queries
from reviewcore.errors import (
    AuthorizationError,
    FieldErrors,
    NotFoundError,
    ValidationError,
    field_errors,
    store_errors,
)

logger = structlog.get_logger(__name__)

MAX_NAME_LENGTH = 255

DUPLICATE_NAME_MESSAGE = "A rule with this name already exists. Please choose a different name"


class RuleDraft(BaseModel):
    """Input for creating a rule.

    Required fields are optional here so that ``validate_rule_draft`` can
    report every missing one at once.
    """

    name: str | None = None
    description: str | None = None
    category: RuleCategory | None = None
    severity: Severity | None = None
    pattern: dict[str, Any] | None = None
    configuration: dict[str, Any] | None = None
    is_enabled: bool = True


class RulePatch(BaseModel):
    """Partial update of a rule. Fields left unset are not touched."""

    name: str | None = None
    description: str | None = None
    category: RuleCategory | None = None
    severity: Severity | None = None
    pattern: dict[str, Any] | None = None
    configuration: dict[str, Any] | None = None
    is_enabled: bool | None = None


class RuleFilter(BaseModel):
    """Filters accepted by ``RuleStore.list_rules``."""

    category: RuleCategory | None = None
    severity: Severity | None = None
    is_enabled: bool | None = None
    is_custom: bool | None = None
    created_by: UUID | None = None
    search: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)


def _name_error(name: str | None) -> str | None:
    if name is None or not name.strip():
        return "Name is required"
    if len(name.strip()) > MAX_NAME_LENGTH:
        return f"Name must be at most {MAX_NAME_LENGTH} characters"
    return None


def validate_rule_draft(draft: RuleDraft) -> FieldErrors:
    """Return field errors for a rule draft (empty if it is valid)."""
    return field_errors(
        name=_name_error(draft.name),
        description=None
        if draft.description and draft.description.strip()
        else "Description is required",
        category=None if draft.category is not None else "Category is required",
        severity=None if draft.severity is not None else "Severity is required",
    )


def required_rule_fields(
    draft: RuleDraft,
    message: str = "Missing required fields",
) -> tuple[str, str, RuleCategory, Severity]:
    """Validate a draft and return its name, description, category and severity.

    Name and description are returned stripped.

    Raises:
        ValidationError: If any required field is missing or blank.
    """
    errors = validate_rule_draft(draft)
    if errors or draft.category is None or draft.severity is None:
        raise ValidationError(message, errors)
    return (
        (draft.name or "").strip(),
        (draft.description or "").strip(),
        draft.category,
        draft.severity,
    )


def validate_rule_patch(patch: RulePatch) -> FieldErrors:
    """Return field errors for the fields a patch sets."""
    provided = patch.model_fields_set
    errors: dict[str, str | None] = {}
    if "name" in provided:
        errors["name"] = _name_error(patch.name)
    if "description" in provided and not (patch.description and patch.description.strip()):
        errors["description"] = "Description cannot be empty"
    for field, key in (("category", "category"), ("severity", "severity"), ("is_enabled", "isEnabled")):
        if field in provided and getattr(patch, field) is None:
            errors[key] = f"{key} cannot be null"
    return field_errors(**errors)


class RuleStore:
    """Create, update, toggle, delete and query rules.

    Attributes:
        session_factory: Factory producing database sessions.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._logger = logger.bind(component="RuleStore")

    async def create_rule(
        self,
        draft: RuleDraft,
        creator: Principal | None = None,
    ) -> Rule:
        """Create a rule.

        A rule created on behalf of a principal is custom and owned by it;
        a rule created without one is a system rule.

        Raises:
            ValidationError: If required fields are missing or the name is
                taken.
        """
        name, description, category, severity = required_rule_fields(draft)
        with store_errors("create_rule", "Failed to create rule"):
            async with self.session_factory() as session:
                async with session.begin():
                    await self._ensure_name_free(session, name)
                    try:
                        rule = await rule_queries.add_rule(
                            session,
                            name=name,
                            description=description,
                            category=category,
                            severity=severity,
                            pattern=draft.pattern,
                            configuration=draft.configuration,
                            created_by_id=creator.user_id if creator else None,
                            is_custom=creator is not None,
                            is_enabled=draft.is_enabled,
                        )
                    except IntegrityError:
                        raise self._duplicate_name() from None

        self._logger.info(
            "rule_created",
            rule_id=str(rule.id),
            name=rule.name,
            is_custom=rule.is_custom,
        )
        return rule

    async def update_rule(
        self,
        rule_id: UUID,
        patch: RulePatch,
        principal: Principal,
    ) -> Rule:
        """Apply a partial update to a rule.

        Raises:
            NotFoundError: If the rule does not exist.
            ValidationError: If a non-admin targets a system rule, the patch
                is invalid, or the new name is taken.
            AuthorizationError: If the rule is someone else's custom rule.
        """
        errors = validate_rule_patch(patch)
        if errors:
            raise ValidationError("Invalid rule update", errors)

        changes = patch.model_dump(exclude_unset=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        if "description" in changes:
            changes["description"] = changes["description"].strip()

        with store_errors("update_rule", "Failed to update rule"):
            async with self.session_factory() as session:
                async with session.begin():
                    rule = await self._mutable_rule(
                        session,
                        rule_id,
                        principal,
                        system_message="Cannot modify system rules",
                        system_detail="Only administrators can modify system rules",
                    )
                    if "name" in changes and changes["name"] != rule.name:
                        await self._ensure_name_free(session, changes["name"])

                    for field, value in changes.items():
                        setattr(rule, field, value)
                    try:
                        await session.flush()
                    except IntegrityError:
                        raise self._duplicate_name() from None
                    await session.refresh(rule)

        self._logger.info("rule_updated", rule_id=str(rule_id), fields=sorted(changes))
        return rule

    async def delete_rule(self, rule_id: UUID, principal: Principal) -> None:
        """Delete a rule and the findings it produced.

        Raises:
            NotFoundError: If the rule does not exist.
            ValidationError: If a non-admin targets a system rule.
            AuthorizationError: If the rule is someone else's custom rule.
        """
        with store_errors("delete_rule", "Failed to delete rule"):
            async with self.session_factory() as session:
                async with session.begin():
                    await self._mutable_rule(
                        session,
                        rule_id,
                        principal,
                        system_message="Cannot delete system rules",
                        system_detail="Only administrators can delete system rules",
                    )
                    await rule_queries.delete_rule(session, rule_id)

        self._logger.info("rule_deleted", rule_id=str(rule_id))

    async def bulk_set_enabled(
        self,
        rule_ids: Sequence[UUID],
        enabled: bool,
        principal: Principal,
    ) -> list[Rule]:
        """Enable or disable several rules at once.

        Non-admins only ever touch custom rules; system rules in
        ``rule_ids`` are skipped for them without an error. The update is a
        single statement in a single transaction: either every matched rule
        changes or none does.

        Returns:
            The updated rules.

        Raises:
            ValidationError: If ``rule_ids`` is empty.
            NotFoundError: If none of the ids match a rule the caller may
                change.
        """
        unique_ids = list(dict.fromkeys(rule_ids))
        if not unique_ids:
            raise ValidationError(
                "Invalid request body",
                {"ruleIds": ["Rule IDs must be a non-empty array"]},
            )

        with store_errors("bulk_update_rules", "Failed to toggle rules"):
            async with self.session_factory() as session:
                async with session.begin():
                    conditions = [Rule.id.in_(unique_ids), *visible_rules(principal)]
                    matched = await rule_queries.find_rules(session, conditions)
                    if not matched:
                        raise NotFoundError("Rules")

                    matched_ids = [rule.id for rule in matched]
                    updated = await rule_queries.set_rules_enabled(session, matched_ids, enabled)
                    if updated != len(matched_ids):
                        raise ValidationError(
                            "Failed to toggle rules",
                            {"general": ["Rules changed while they were being updated"]},
                        )

                    session.expire_all()
                    rules = await rule_queries.find_rules(session, [Rule.id.in_(matched_ids)])

        self._logger.info(
            "rules_bulk_updated",
            requested=len(unique_ids),
            updated=len(rules),
            enabled=enabled,
        )
        return rules

    async def get_rule(self, rule_id: UUID, principal: Principal) -> Rule:
        """Fetch a rule visible to the caller.

        Raises:
            NotFoundError: If the rule is absent or hidden from the caller.
        """
        with store_errors("fetch_rule", "Failed to fetch rule"):
            async with self.session_factory() as session:
                rule = await rule_queries.get_rule(session, rule_id, visible_rules(principal))
        if rule is None:
            raise NotFoundError("Rule")
        return rule

    async def list_rules(
        self,
        principal: Principal,
        filters: RuleFilter | None = None,
    ) -> list[Rule]:
        """List rules visible to the caller, with optional filters."""
        filters = filters or RuleFilter()
        with store_errors("list_rules", "Failed to fetch rules"):
            async with self.session_factory() as session:
                return await rule_queries.find_rules(
                    session,
                    visible_rules(principal),
                    category=filters.category,
                    severity=filters.severity,
                    is_enabled=filters.is_enabled,
                    is_custom=filters.is_custom,
                    created_by=filters.created_by,
                    search=filters.search,
                )

    async def seed_system_rules(self, drafts: Sequence[RuleDraft] | None = None) -> list[Rule]:
        """Insert the built-in system rules that are not present yet.

        Args:
            drafts: Rules to seed; defaults to ``SYSTEM_RULES``.

        Returns:
            The rules that were inserted by this call.

        Raises:
            ValidationError: If a draft lacks a required field. Nothing is
                inserted in that case.
        """
        from reviewcore.rules.system_rules import SYSTEM_RULES

        checked = [
            (required_rule_fields(draft, "Invalid system rule"), draft)
            for draft in (drafts if drafts is not None else SYSTEM_RULES)
        ]

        created: list[Rule] = []
        with store_errors("seed_rules", "Failed to seed system rules"):
            async with self.session_factory() as session:
                async with session.begin():
                    for (name, description, category, severity), draft in checked:
                        if await rule_queries.get_rule_by_name(session, name) is not None:
                            continue
                        created.append(
                            await rule_queries.add_rule(
                                session,
                                name=name,
                                description=description,
                                category=category,
                                severity=severity,
                                pattern=draft.pattern,
                                configuration=draft.configuration,
                                is_custom=False,
                                is_enabled=draft.is_enabled,
                            )
                        )

        self._logger.info("system_rules_seeded", created=len(created))
        return created

    async def _ensure_name_free(self, session: AsyncSession, name: str) -> None:
        if await rule_queries.get_rule_by_name(session, name) is not None:
            raise self._duplicate_name()

    async def _mutable_rule(
        self,
        session: AsyncSession,
        rule_id: UUID,
        principal: Principal,
        system_message: str,
        system_detail: str,
    ) -> Rule:
        rule = await rule_queries.get_rule(session, rule_id)
        if rule is None:
            raise NotFoundError("Rule")
        if not rule.is_custom and not principal.is_admin:
            raise ValidationError(system_message, {"permission": [system_detail]})
        if not can_mutate_rule(principal, rule):
            self._logger.warning(
                "rule_mutation_denied",
                rule_id=str(rule_id),
                user_id=str(principal.user_id),
            )
            raise AuthorizationError("Not authorized to modify this rule")
        return rule

    @staticmethod
    def _duplicate_name() -> ValidationError:
        return ValidationError("Rule with this name already exists", {"name": [DUPLICATE_NAME_MESSAGE]})
