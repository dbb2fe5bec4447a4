"""Finding query functions for reviewcore.

Findings are written in batches and never updated. Reads return them in
report order: most severe first, then by line number. Callers own the
transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewcore.database.models.finding import Finding
from reviewcore.database.queries.ordering import severity_rank


async def add_findings(session: AsyncSession, findings: Sequence[Finding]) -> None:
    """Insert a batch of findings and flush them."""
    session.add_all(findings)
    await session.flush()


async def list_findings(session: AsyncSession, review_id: UUID) -> list[Finding]:
    """List a review's findings by severity descending, then line ascending."""
    stmt = (
        select(Finding)
        .where(Finding.review_id == review_id)
        .order_by(
            severity_rank(Finding.severity).desc(),
            Finding.line_number.asc(),
            Finding.file_path.asc(),
        )
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
