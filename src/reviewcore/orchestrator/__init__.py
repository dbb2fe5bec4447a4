"""Background evaluation of reviews for reviewcore."""

from reviewcore.orchestrator.recovery import RecoveryManager, RecoveryReport
from reviewcore.orchestrator.scheduler import EvaluationJob, EvaluationScheduler

__all__ = [
    "EvaluationJob",
    "EvaluationScheduler",
    "RecoveryManager",
    "RecoveryReport",
]
