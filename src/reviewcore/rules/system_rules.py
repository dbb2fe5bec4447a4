"""Built-in system rules, one per category.

These are inserted by ``RuleStore.seed_system_rules`` (``reviewcore
seed-rules``). Their ``pattern`` names a matcher type; no matcher for these
types ships with reviewcore, so until one is registered the rules are
listed and toggled but produce no findings.
"""

from __future__ import annotations

from reviewcore.database.models.rule import RuleCategory, Severity
from reviewcore.rules.store import RuleDraft

SYSTEM_RULES: tuple[RuleDraft, ...] = (
    RuleDraft(
        name="no-hardcoded-secrets",
        description="Credentials, tokens and private keys must not be committed to source.",
        category=RuleCategory.SECURITY,
        severity=Severity.CRITICAL,
        pattern={"type": "secret-scan"},
        configuration={"entropy_threshold": 4.5},
    ),
    RuleDraft(
        name="max-line-length",
        description="Lines should not exceed the configured maximum length.",
        category=RuleCategory.CODE_STYLE,
        severity=Severity.INFO,
        pattern={"type": "line-length"},
        configuration={"max_length": 120},
    ),
    RuleDraft(
        name="no-nested-loops-over-collections",
        description="Nested iteration over the same collection is usually quadratic.",
        category=RuleCategory.PERFORMANCE,
        severity=Severity.WARNING,
        pattern={"type": "nested-loop"},
        configuration={"max_depth": 2},
    ),
    RuleDraft(
        name="max-function-length",
        description="Functions longer than the configured limit are hard to maintain.",
        category=RuleCategory.MAINTAINABILITY,
        severity=Severity.WARNING,
        pattern={"type": "function-length"},
        configuration={"max_lines": 50},
    ),
    RuleDraft(
        name="no-unreachable-code",
        description="Statements after an unconditional return, raise or break never run.",
        category=RuleCategory.BUG_RISK,
        severity=Severity.ERROR,
        pattern={"type": "unreachable-code"},
        configuration={},
    ),
)
