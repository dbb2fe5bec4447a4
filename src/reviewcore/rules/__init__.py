"""Rule catalogue and rule evaluation for reviewcore."""

from reviewcore.rules.engine import (
    ChangeSetProvider,
    EmptyChangeSetProvider,
    FileChange,
    MatcherRegistry,
    PatternMatch,
    PatternMatcher,
    RuleEngine,
)
from reviewcore.rules.store import RuleDraft, RuleFilter, RulePatch, RuleStore
from reviewcore.rules.system_rules import SYSTEM_RULES

__all__ = [
    "ChangeSetProvider",
    "EmptyChangeSetProvider",
    "FileChange",
    "MatcherRegistry",
    "PatternMatch",
    "PatternMatcher",
    "RuleEngine",
    "RuleDraft",
    "RuleFilter",
    "RulePatch",
    "RuleStore",
    "SYSTEM_RULES",
]
