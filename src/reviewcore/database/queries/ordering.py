"""SQL ordering expressions for enumerated columns.

Enum columns are persisted by member name, so ordering on the raw column
would sort alphabetically. These helpers order by declaration position
instead, matching the native enum ordering PostgreSQL applies.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import case
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql.elements import Case

from reviewcore.database.models.rule import RuleCategory, Severity


def enum_rank(column: InstrumentedAttribute[Any], members: list[Any]) -> Case[int]:
    """Map each enum member stored in ``column`` to its declaration index."""
    return case(
        *[(column == member, index) for index, member in enumerate(members)],
        else_=len(members),
    )


def severity_rank(column: InstrumentedAttribute[Severity]) -> Case[int]:
    """Rank of a severity column, INFO=0 up to CRITICAL=3."""
    return enum_rank(column, list(Severity))


def category_rank(column: InstrumentedAttribute[RuleCategory]) -> Case[int]:
    """Rank of a rule category column in declaration order."""
    return enum_rank(column, list(RuleCategory))
