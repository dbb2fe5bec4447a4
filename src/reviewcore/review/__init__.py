"""Review lifecycle, findings and metrics for reviewcore.

- ``ReviewLifecycleManager``: creates reviews and drives their state machine
- ``FindingAggregator``: stores findings and returns them in report order
- ``MetricsCalculator``: per-repository review statistics
"""

from reviewcore.review.findings import FindingAggregator, FindingDraft
from reviewcore.review.lifecycle import (
    EvaluationTrigger,
    ReviewLifecycleManager,
    validate_review_request,
)
from reviewcore.review.metrics import MetricsCalculator, ReviewMetrics
from reviewcore.review.state_machine import (
    VALID_TRANSITIONS,
    InvalidTransitionError,
    Outcome,
    finish_path,
    validate_transition,
)

__all__ = [
    # Lifecycle
    "EvaluationTrigger",
    "ReviewLifecycleManager",
    "validate_review_request",
    # State machine
    "VALID_TRANSITIONS",
    "InvalidTransitionError",
    "Outcome",
    "finish_path",
    "validate_transition",
    # Findings
    "FindingAggregator",
    "FindingDraft",
    # Metrics
    "MetricsCalculator",
    "ReviewMetrics",
]
