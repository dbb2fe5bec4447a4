"""Integration tests for FindingAggregator."""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio

from reviewcore.access import Principal
from reviewcore.context import ServiceContext
from reviewcore.database.models.repository import Repository
from reviewcore.database.models.review import Review
from reviewcore.database.models.rule import Rule, RuleCategory, Severity
from reviewcore.errors import ValidationError
from reviewcore.review.findings import FindingDraft
from reviewcore.rules.store import RuleDraft, RulePatch


@pytest_asyncio.fixture
async def review(
    context: ServiceContext, repository: Repository, alice_principal: Principal
) -> Review:
    return await context.lifecycle.create(repository.id, "abc123", "main", alice_principal)


@pytest_asyncio.fixture
async def rule(context: ServiceContext) -> Rule:
    return await context.rules.create_rule(
        RuleDraft(
            name="no-eval",
            description="Avoid eval",
            category=RuleCategory.SECURITY,
            severity=Severity.ERROR,
        )
    )


def make_draft(review: Review, rule: Rule, line: int, **overrides: object) -> FindingDraft:
    values: dict[str, object] = {
        "review_id": review.id,
        "rule_id": rule.id,
        "file_path": "app.py",
        "line_number": line,
        "message": "eval() call",
    }
    values.update(overrides)
    return FindingDraft(**values)


@pytest.mark.asyncio
async def test_record_returns_report_order(
    context: ServiceContext, review: Review, rule: Rule
) -> None:
    drafts = [
        make_draft(review, rule, 30, severity=Severity.INFO),
        make_draft(review, rule, 12),
        make_draft(review, rule, 50, severity=Severity.CRITICAL),
        make_draft(review, rule, 3),
    ]

    recorded = await context.findings.record(review.id, drafts)

    assert [(f.severity, f.line_number) for f in recorded] == [
        (Severity.CRITICAL, 50),
        (Severity.ERROR, 3),
        (Severity.ERROR, 12),
        (Severity.INFO, 30),
    ]


@pytest.mark.asyncio
async def test_severity_defaults_to_rule(
    context: ServiceContext, review: Review, rule: Rule
) -> None:
    [finding] = await context.findings.record(review.id, [make_draft(review, rule, 1)])
    assert finding.severity is Severity.ERROR


@pytest.mark.asyncio
async def test_list_by_review_matches_record_order(
    context: ServiceContext, review: Review, rule: Rule
) -> None:
    await context.findings.record(
        review.id,
        [
            make_draft(review, rule, 9, severity=Severity.WARNING),
            make_draft(review, rule, 2, severity=Severity.CRITICAL, metadata={"k": 1}),
            make_draft(review, rule, 1, severity=Severity.WARNING),
        ],
    )

    listed = await context.findings.list_by_review(review.id)

    assert [(f.severity, f.line_number) for f in listed] == [
        (Severity.CRITICAL, 2),
        (Severity.WARNING, 1),
        (Severity.WARNING, 9),
    ]
    assert listed[0].finding_metadata == {"k": 1}


@pytest.mark.asyncio
async def test_unknown_rule_rejects_whole_batch(
    context: ServiceContext, review: Review, rule: Rule
) -> None:
    drafts = [make_draft(review, rule, 1), make_draft(review, rule, 2, rule_id=uuid.uuid4())]

    with pytest.raises(ValidationError) as excinfo:
        await context.findings.record(review.id, drafts)

    assert excinfo.value.message == "Invalid findings"
    assert "ruleId" in excinfo.value.errors
    assert await context.findings.list_by_review(review.id) == []


@pytest.mark.asyncio
async def test_line_number_below_one(
    context: ServiceContext, review: Review, rule: Rule
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        await context.findings.record(review.id, [make_draft(review, rule, 0)])

    assert "lineNumber" in excinfo.value.errors


@pytest.mark.asyncio
async def test_draft_for_other_review(
    context: ServiceContext, review: Review, rule: Rule
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        await context.findings.record(uuid.uuid4(), [make_draft(review, rule, 1)])

    assert "reviewId" in excinfo.value.errors


@pytest.mark.asyncio
async def test_empty_batch(context: ServiceContext, review: Review) -> None:
    assert await context.findings.record(review.id, []) == []


@pytest.mark.asyncio
async def test_rule_changes_do_not_touch_recorded_findings(
    context: ServiceContext, review: Review, rule: Rule, admin_principal: Principal
) -> None:
    await context.findings.record(review.id, [make_draft(review, rule, 1)])
    await context.rules.update_rule(rule.id, RulePatch(severity=Severity.INFO), admin_principal)

    [finding] = await context.findings.list_by_review(review.id)
    assert finding.severity is Severity.ERROR


@pytest.mark.asyncio
async def test_deleting_rule_removes_its_findings(
    context: ServiceContext, review: Review, rule: Rule, admin_principal: Principal
) -> None:
    await context.findings.record(review.id, [make_draft(review, rule, 1)])

    await context.rules.delete_rule(rule.id, admin_principal)

    assert await context.findings.list_by_review(review.id) == []


@pytest.mark.asyncio
async def test_deleting_review_removes_findings(
    context: ServiceContext, review: Review, rule: Rule, alice_principal: Principal
) -> None:
    await context.findings.record(review.id, [make_draft(review, rule, 1)])

    await context.lifecycle.delete(review.id, alice_principal)

    assert await context.findings.list_by_review(review.id) == []
