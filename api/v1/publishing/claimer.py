"""
Schedule claimer and bounded worker pool for scheduled publishing.

Claiming is best effort: due rows are selected, then flipped to running in a
separate UPDATE. Two passes that overlap before the flip lands will both
process the same entry; processing overwrites publish fields rather than
appending, and attempts is incremented in SQL, so double processing is
visible but not corrupting. Delivery is at-least-once, never exactly-once.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.exceptions import NotFoundError
from api.v1.core.registries import StoryAnalyzer
from api.v1.publishing.models import PublishScheduleEntry, ScheduleStatus
from api.v1.publishing.processor import ClaimedEntry, PublishProcessor

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class BatchResult:
    processed: int = 0
    failed: int = 0


async def drain_queue(
    items: Sequence[T],
    handler: Callable[[T], Awaitable[bool]],
    concurrency: int,
) -> BatchResult:
    """
    Process ``items`` with at most ``concurrency`` handlers in flight.

    Workers pop from a shared FIFO queue until it is empty. A handler that
    raises counts as a failure for that item only.
    """
    result = BatchResult()
    pool_size = min(concurrency, len(items))
    if pool_size <= 0:
        return result

    queue: asyncio.Queue[T] = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)

    async def worker() -> None:
        while True:
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                ok = await handler(item)
            except Exception:
                logger.exception("Worker handler raised")
                ok = False

            if ok:
                result.processed += 1
            else:
                result.failed += 1

    await asyncio.gather(*(worker() for _ in range(pool_size)))
    return result


class ScheduleClaimer:
    """Claims due publish schedule entries and drains them through the pool."""

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        analyzer: StoryAnalyzer,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.processor = PublishProcessor(settings, session_factory, analyzer)

    async def select_due(
        self, session: AsyncSession, now: datetime | None = None
    ) -> list[ClaimedEntry]:
        """Oldest-due first, up to the page limit."""
        now = now or datetime.now(UTC)
        result = await session.execute(
            select(PublishScheduleEntry)
            .where(
                PublishScheduleEntry.status == ScheduleStatus.SCHEDULED.value,
                PublishScheduleEntry.run_at <= now,
            )
            .order_by(PublishScheduleEntry.run_at.asc())
            .limit(self.settings.publish_page_limit)
        )
        return [ClaimedEntry.from_row(entry) for entry in result.scalars().all()]

    async def count_due(self, session: AsyncSession, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        result = await session.execute(
            select(func.count(PublishScheduleEntry.id)).where(
                PublishScheduleEntry.status == ScheduleStatus.SCHEDULED.value,
                PublishScheduleEntry.run_at <= now,
            )
        )
        return result.scalar() or 0

    async def mark_running(self, session: AsyncSession, entry_ids: list[UUID]) -> bool:
        """
        Flip claimed ids to running in one statement.

        Not a lock. On failure the batch is still processed.
        """
        try:
            await session.execute(
                update(PublishScheduleEntry)
                .where(PublishScheduleEntry.id.in_(entry_ids))
                .values(
                    status=ScheduleStatus.RUNNING.value,
                    updated_at=datetime.now(UTC),
                )
            )
            await session.commit()
            return True
        except Exception:
            await session.rollback()
            logger.exception("Marking claimed entries running failed", entry_count=len(entry_ids))
            return False

    async def process_claimed(self, entries: Sequence[ClaimedEntry]) -> BatchResult:
        return await drain_queue(
            entries, self.processor.process, self.settings.publish_concurrency
        )

    async def run(self, now: datetime | None = None) -> BatchResult:
        """One claim pass: select, mark running, drain. Returns counts."""
        async with self.session_factory() as session:
            entries = await self.select_due(session, now)
            if not entries:
                logger.info("No scheduled publishes due")
                return BatchResult()

            await self.mark_running(session, [entry.id for entry in entries])

        logger.info(
            "Claimed scheduled publishes",
            entry_count=len(entries),
            entry_ids=[str(entry.id) for entry in entries],
        )

        result = await self.process_claimed(entries)

        logger.info(
            "Scheduled publish pass finished",
            processed=result.processed,
            failed=result.failed,
        )
        return result

    async def requeue(self, entry_id: UUID) -> None:
        """Flip one entry back to scheduled so the next pass picks it up."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(PublishScheduleEntry)
                .where(PublishScheduleEntry.id == entry_id)
                .values(
                    status=ScheduleStatus.SCHEDULED.value,
                    updated_at=datetime.now(UTC),
                )
            )
            await session.commit()

        if result.rowcount == 0:
            raise NotFoundError(
                "Schedule entry not found", details={"entry_id": str(entry_id)}
            )

        logger.info("Schedule entry requeued", entry_id=str(entry_id))
