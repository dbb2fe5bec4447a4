"""Unit tests for finding draft validation and report ordering."""

from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError

from reviewcore.database.models.finding import Finding
from reviewcore.database.models.rule import Rule, RuleCategory, Severity
from reviewcore.review.findings import FindingDraft, report_order_key, validate_drafts


@pytest.fixture
def rule() -> Rule:
    return Rule(
        id=uuid.uuid4(),
        name="no-eval",
        description="Avoid eval",
        category=RuleCategory.SECURITY,
        severity=Severity.ERROR,
        is_custom=False,
        is_enabled=True,
    )


def draft(review_id: uuid.UUID, rule_id: uuid.UUID, line: int = 1) -> FindingDraft:
    return FindingDraft(
        review_id=review_id,
        rule_id=rule_id,
        file_path="app.py",
        line_number=line,
        message="eval() call",
    )


class TestFindingDraft:
    def test_requires_message(self) -> None:
        with pytest.raises(ValidationError):
            FindingDraft(
                review_id=uuid.uuid4(),
                rule_id=uuid.uuid4(),
                file_path="app.py",
                line_number=1,
                message="",
            )

    def test_requires_file_path(self) -> None:
        with pytest.raises(ValidationError):
            FindingDraft(
                review_id=uuid.uuid4(),
                rule_id=uuid.uuid4(),
                file_path="",
                line_number=1,
                message="m",
            )

    def test_severity_optional(self) -> None:
        assert draft(uuid.uuid4(), uuid.uuid4()).severity is None


class TestValidateDrafts:
    def test_valid_batch(self, rule: Rule) -> None:
        review_id = uuid.uuid4()
        drafts = [draft(review_id, rule.id, line) for line in (1, 5, 9)]
        assert validate_drafts(drafts, review_id, {rule.id: rule}) == {}

    def test_unknown_rule(self, rule: Rule) -> None:
        review_id = uuid.uuid4()
        errors = validate_drafts([draft(review_id, uuid.uuid4())], review_id, {rule.id: rule})
        assert list(errors) == ["ruleId"]

    def test_other_review(self, rule: Rule) -> None:
        errors = validate_drafts([draft(uuid.uuid4(), rule.id)], uuid.uuid4(), {rule.id: rule})
        assert list(errors) == ["reviewId"]

    @pytest.mark.parametrize("line", [0, -3])
    def test_line_below_one(self, rule: Rule, line: int) -> None:
        review_id = uuid.uuid4()
        errors = validate_drafts([draft(review_id, rule.id, line)], review_id, {rule.id: rule})
        assert list(errors) == ["lineNumber"]

    def test_collects_every_problem(self, rule: Rule) -> None:
        review_id = uuid.uuid4()
        drafts = [
            draft(review_id, rule.id, 0),
            draft(review_id, uuid.uuid4(), 2),
            draft(review_id, rule.id, -1),
        ]
        errors = validate_drafts(drafts, review_id, {rule.id: rule})
        assert len(errors["lineNumber"]) == 2
        assert len(errors["ruleId"]) == 1


def test_report_order_key() -> None:
    def finding(severity: Severity, line: int, path: str = "a.py") -> Finding:
        return Finding(severity=severity, line_number=line, file_path=path, message="m")

    findings = [
        finding(Severity.INFO, 1),
        finding(Severity.CRITICAL, 40),
        finding(Severity.ERROR, 7, "b.py"),
        finding(Severity.CRITICAL, 2),
        finding(Severity.ERROR, 7, "a.py"),
    ]

    ordered = sorted(findings, key=report_order_key)

    assert [(f.severity, f.line_number, f.file_path) for f in ordered] == [
        (Severity.CRITICAL, 2, "a.py"),
        (Severity.CRITICAL, 40, "a.py"),
        (Severity.ERROR, 7, "a.py"),
        (Severity.ERROR, 7, "b.py"),
        (Severity.INFO, 1, "a.py"),
    ]
