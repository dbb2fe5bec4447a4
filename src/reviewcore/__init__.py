"""reviewcore - Review orchestration and rule evaluation core.

This package drives code reviews through their lifecycle, evaluates the
configured analysis rules against a review's change set, records the
resulting findings, and aggregates review metrics per repository.
"""

__version__ = "0.1.0"
