"""Daily document numbers (TKT-20250101-0001, RMA-..., TRF-..., REQ-...)"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.types import document_number


async def next_document_number(
    db: AsyncSession,
    column,
    prefix: str,
    when: Optional[datetime] = None
) -> str:
    """
    Next number for ``prefix`` on the given day.

    ``column`` is the model column holding the numbers; the highest existing
    number of the day is incremented so gaps left by deletions are not reused.
    """
    when = when or datetime.utcnow()
    day_prefix = f"{prefix}-{when.strftime('%Y%m%d')}-"

    latest = await db.scalar(
        select(func.max(column)).where(column.like(f"{day_prefix}%"))
    )
    sequence = 1
    if latest:
        try:
            sequence = int(latest.rsplit("-", 1)[-1]) + 1
        except ValueError:
            sequence = 1
    return document_number(prefix, sequence, when)
