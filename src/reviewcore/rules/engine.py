"""Rule evaluation for reviewcore.

The engine selects the enabled rules and runs each one against a review's
change set through a *matcher*: a strategy object registered under the
``type`` key of the rule's ``pattern``. Matches are turned into
``FindingDraft`` objects tagged with the rule and the review; persisting
them is the aggregator's job.

reviewcore does not analyse source text itself. Matchers are supplied by
the deployment:

    >>> registry = MatcherRegistry()
    >>> registry.register("line-length", LineLengthMatcher())
    >>> engine = RuleEngine(session_factory, registry)

Rules whose pattern type has no registered matcher produce no findings.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Protocol
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewcore.database.models.review import Review
from reviewcore.database.models.rule import Rule
from reviewcore.database.queries.rule import find_rules
from reviewcore.errors import store_errors
from reviewcore.review.findings import FindingDraft
from reviewcore.rules.store import RuleFilter

logger = structlog.get_logger(__name__)


class FileChange(BaseModel):
    """One changed file in a review's change set.

    Attributes:
        path: Repository-relative file path.
        status: Change kind as reported by the VCS (added, modified, ...).
        content: Full post-change file content, when available.
        patch: Unified diff of the change, when available.
    """

    path: str
    status: str = "modified"
    content: str | None = None
    patch: str | None = None


class PatternMatch(BaseModel):
    """A location a matcher flagged. ``message`` defaults to the rule's description."""

    file_path: str
    line_number: int = Field(..., ge=1)
    column_start: int | None = None
    column_end: int | None = None
    message: str | None = None
    snippet: str | None = None
    suggested_fix: str | None = None
    metadata: dict[str, Any] | None = None


class PatternMatcher(Protocol):
    """Strategy applying one kind of rule pattern to a change set."""

    def match(self, rule: Rule, changes: Sequence[FileChange]) -> Iterable[PatternMatch]:
        """Yield every location in ``changes`` the rule flags."""
        ...


class ChangeSetProvider(Protocol):
    """Source of the files changed by a review's commit."""

    async def fetch(self, review: Review) -> list[FileChange]:
        """Return the change set for ``review``'s commit and branch."""
        ...


class EmptyChangeSetProvider:
    """Change set provider used when no VCS integration is configured."""

    async def fetch(self, review: Review) -> list[FileChange]:
        return []


class MatcherRegistry:
    """Pattern type -> matcher lookup."""

    def __init__(self, matchers: dict[str, PatternMatcher] | None = None) -> None:
        self._matchers: dict[str, PatternMatcher] = dict(matchers or {})

    def register(self, pattern_type: str, matcher: PatternMatcher) -> None:
        """Register ``matcher`` for ``pattern_type``, replacing any previous one."""
        if not pattern_type:
            raise ValueError("pattern_type must be a non-empty string")
        self._matchers[pattern_type] = matcher
        logger.debug("matcher_registered", pattern_type=pattern_type)

    def unregister(self, pattern_type: str) -> None:
        self._matchers.pop(pattern_type, None)

    def get(self, pattern_type: str | None) -> PatternMatcher | None:
        if pattern_type is None:
            return None
        return self._matchers.get(pattern_type)

    @property
    def pattern_types(self) -> list[str]:
        return sorted(self._matchers)

    def __contains__(self, pattern_type: object) -> bool:
        return pattern_type in self._matchers


def pattern_type(rule: Rule) -> str | None:
    """The matcher type a rule's pattern asks for, if any."""
    if not rule.pattern:
        return None
    value = rule.pattern.get("type")
    return value if isinstance(value, str) and value else None


class RuleEngine:
    """Selects active rules and evaluates them against change sets.

    Attributes:
        session_factory: Factory producing database sessions.
        registry: Matchers available to the engine.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: MatcherRegistry | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry or MatcherRegistry()
        self._logger = logger.bind(component="RuleEngine")

    async def select_active_rules(self, filters: RuleFilter | None = None) -> list[Rule]:
        """Enabled rules, ordered by category then severity (most severe first).

        Only the ``category`` and ``severity`` parts of ``filters`` apply;
        ``is_enabled`` is always true here.
        """
        filters = filters or RuleFilter()
        with store_errors("select_rules", "Failed to fetch rules"):
            async with self.session_factory() as session:
                return await find_rules(
                    session,
                    category=filters.category,
                    severity=filters.severity,
                    is_enabled=True,
                )

    def apply(
        self,
        rule: Rule,
        review_id: UUID,
        changes: Sequence[FileChange],
    ) -> list[FindingDraft]:
        """Run one rule against a change set.

        Returns an empty list when no matcher is registered for the rule's
        pattern type.
        """
        kind = pattern_type(rule)
        matcher = self.registry.get(kind)
        if matcher is None:
            self._logger.debug(
                "rule_skipped_no_matcher",
                rule_id=str(rule.id),
                rule_name=rule.name,
                pattern_type=kind,
            )
            return []

        return [
            FindingDraft(
                review_id=review_id,
                rule_id=rule.id,
                file_path=match.file_path,
                line_number=match.line_number,
                column_start=match.column_start,
                column_end=match.column_end,
                severity=rule.severity,
                message=match.message or rule.description,
                snippet=match.snippet,
                suggested_fix=match.suggested_fix,
                metadata=match.metadata,
            )
            for match in matcher.match(rule, changes)
        ]

    async def evaluate(
        self,
        review: Review,
        changes: Sequence[FileChange],
        rules: Sequence[Rule] | None = None,
    ) -> list[FindingDraft]:
        """Evaluate the active rule set against a review's change set.

        Args:
            review: Review being evaluated.
            changes: Files changed by the review's commit.
            rules: Rules to apply; defaults to ``select_active_rules()``.

        Returns:
            Finding drafts from every rule, in rule order.
        """
        if rules is None:
            rules = await self.select_active_rules()

        drafts: list[FindingDraft] = []
        for rule in rules:
            drafts.extend(self.apply(rule, review.id, changes))

        self._logger.info(
            "review_evaluated",
            review_id=str(review.id),
            rule_count=len(rules),
            file_count=len(changes),
            draft_count=len(drafts),
        )
        return drafts
