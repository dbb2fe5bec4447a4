"""Finding aggregation for reviewcore.

The aggregator is the only writer of findings. It takes the drafts a rule
evaluation produced, checks each one against the rules that exist at call
time, and stores the whole batch in a single transaction. Findings are
never re-validated afterwards: deleting or editing a rule later does not
touch findings already written (except the explicit cascade on rule
deletion).

Report order is severity descending (CRITICAL first), then line number
ascending.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.database.models.finding import Finding
from reviewcore.database.models.rule import Rule, Severity
from reviewcore.database.queries.finding import add_findings, list_findings
from reviewcore.database.queries.rule import find_rules
from reviewcore.errors import FieldErrors, ValidationError, store_errors

logger = structlog.get_logger(__name__)


class FindingDraft(BaseModel):
    """An unsaved finding produced by rule evaluation.

    ``severity`` defaults to the rule's severity when the draft is recorded.
    ``line_number`` is checked by ``FindingAggregator.record`` rather than
    here so a bad draft is reported alongside the rest of its batch.
    """

    review_id: UUID
    rule_id: UUID
    file_path: str = Field(..., min_length=1, max_length=1024)
    line_number: int
    column_start: int | None = None
    column_end: int | None = None
    severity: Severity | None = None
    message: str = Field(..., min_length=1)
    snippet: str | None = None
    suggested_fix: str | None = None
    metadata: dict[str, Any] | None = None


def report_order_key(finding: Finding) -> tuple[int, int, str]:
    """Sort key giving severity descending, then line and path ascending."""
    return (-finding.severity.rank, finding.line_number, finding.file_path)


def validate_drafts(
    drafts: Sequence[FindingDraft],
    review_id: UUID,
    known_rules: dict[UUID, Rule],
) -> FieldErrors:
    """Check a batch of drafts, returning a field error map (empty if valid)."""
    errors: FieldErrors = {}
    for index, draft in enumerate(drafts):
        if draft.review_id != review_id:
            errors.setdefault("reviewId", []).append(
                f"Finding {index} belongs to a different review"
            )
        if draft.rule_id not in known_rules:
            errors.setdefault("ruleId", []).append(
                f"Finding {index} references unknown rule {draft.rule_id}"
            )
        if draft.line_number < 1:
            errors.setdefault("lineNumber", []).append(
                f"Finding {index} has line number {draft.line_number}; must be at least 1"
            )
    return errors


class FindingAggregator:
    """Persists findings for a review and returns them in report order.

    Attributes:
        session_factory: Factory producing database sessions.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._logger = logger.bind(component="FindingAggregator")

    async def record(
        self,
        review_id: UUID,
        drafts: Sequence[FindingDraft],
    ) -> list[Finding]:
        """Validate and store a batch of findings for one review.

        Either every draft is stored or none is.

        Args:
            review_id: Review the findings belong to.
            drafts: Finding drafts, typically from ``RuleEngine.evaluate``.

        Returns:
            The stored findings, severity descending then line ascending.

        Raises:
            ValidationError: If a draft references an unknown rule, another
                review, or a line number below 1.
        """
        if not drafts:
            return []

        with store_errors("record_findings", "Failed to record findings"):
            async with self.session_factory() as session:
                async with session.begin():
                    findings = await self.write(session, review_id, drafts)

        self._logger.info(
            "findings_recorded",
            review_id=str(review_id),
            count=len(findings),
        )
        return findings

    async def write(
        self,
        session: AsyncSession,
        review_id: UUID,
        drafts: Sequence[FindingDraft],
    ) -> list[Finding]:
        """Validate and add a batch of findings inside the caller's transaction.

        Nothing is committed here; a ValidationError leaves the session
        untouched so the caller's rollback discards the whole batch.

        Raises:
            ValidationError: As for ``record``.
        """
        if not drafts:
            return []

        rule_ids = {draft.rule_id for draft in drafts}
        rules = await find_rules(session, [Rule.id.in_(rule_ids)])
        known_rules = {rule.id: rule for rule in rules}

        errors = validate_drafts(drafts, review_id, known_rules)
        if errors:
            self._logger.warning(
                "findings_rejected",
                review_id=str(review_id),
                draft_count=len(drafts),
                fields=sorted(errors),
            )
            raise ValidationError("Invalid findings", errors)

        findings = [
            Finding(
                review_id=review_id,
                rule_id=draft.rule_id,
                file_path=draft.file_path,
                line_number=draft.line_number,
                column_start=draft.column_start,
                column_end=draft.column_end,
                severity=draft.severity or known_rules[draft.rule_id].severity,
                message=draft.message,
                snippet=draft.snippet,
                suggested_fix=draft.suggested_fix,
                finding_metadata=draft.metadata,
            )
            for draft in drafts
        ]
        await add_findings(session, findings)
        return sorted(findings, key=report_order_key)

    async def list_by_review(self, review_id: UUID) -> list[Finding]:
        """Return a review's findings in report order."""
        with store_errors("list_findings", "Failed to fetch findings"):
            async with self.session_factory() as session:
                return await list_findings(session, review_id)
