"""
Per-entry publishing: one worker, one schedule entry, end to end.
"""

import hashlib
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.config.logging import bind_job_context, get_logger, reset_job_context
from api.config.settings import Settings
from api.v1.content.models import (
    ContentSession,
    ContentStatus,
    PublishEvent,
    PublishEventType,
    SessionMetrics,
    SessionSnippet,
)
from api.v1.core.exceptions import NotFoundError, SideEffectError
from api.v1.core.registries import StoryAnalyzer
from api.v1.publishing.analysis import StoryInsights
from api.v1.publishing.models import PublishScheduleEntry, ScheduleStatus

logger = get_logger(__name__)

UNDEFINED_COLUMN_SQLSTATE = "42703"
_UNDEFINED_COLUMN_PATTERN = re.compile(
    r"column .* does not exist|no such column|has no column named", re.IGNORECASE
)
MAX_ERROR_LENGTH = 2000


@dataclass(frozen=True)
class ClaimedEntry:
    """Snapshot of a claimed schedule row, safe to hand across sessions."""

    id: UUID
    session_id: UUID
    run_at: datetime
    visibility: str
    note: str | None
    attempts: int

    @classmethod
    def from_row(cls, entry: PublishScheduleEntry) -> "ClaimedEntry":
        return cls(
            id=entry.id,
            session_id=entry.session_id,
            run_at=entry.run_at,
            visibility=entry.visibility,
            note=entry.note,
            attempts=entry.attempts,
        )


def is_undefined_column_error(exc: Exception) -> bool:
    """True for "column does not exist" errors from PostgreSQL or SQLite."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == UNDEFINED_COLUMN_SQLSTATE:
        return True
    return bool(_UNDEFINED_COLUMN_PATTERN.search(str(orig if orig is not None else exc)))


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def describe_error(exc: Exception) -> str:
    return f"{exc.__class__.__name__}: {exc}"[:MAX_ERROR_LENGTH]


class PublishProcessor:
    """
    Publishes the content session behind one schedule entry.

    Steps: load text, analyze (best effort), write publish fields in one
    transaction with a savepoint per column, emit audit and metrics (best
    effort), finalize the entry. Every entry gets its own database session.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        analyzer: StoryAnalyzer,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.analyzer = analyzer

    async def process(self, entry: ClaimedEntry) -> bool:
        """Process one entry. Returns True when it ends done, False when failed."""
        tokens = bind_job_context(entry_id=entry.id, session_id=entry.session_id)
        try:
            return await self._process(entry)
        finally:
            reset_job_context(tokens)

    async def _process(self, entry: ClaimedEntry) -> bool:
        async with self.session_factory() as session:
            try:
                text = await self._load_story(session, entry)
                insights = await self._analyze(text)
                await self._apply_publish_fields(session, entry, text, insights)

                await self._best_effort(
                    session,
                    "publish event",
                    lambda: self._add_publish_event(session, entry, insights),
                )
                await self._best_effort(
                    session,
                    "session metrics",
                    lambda: self._seed_metrics(session, entry),
                )

                await self._finalize(
                    session,
                    entry,
                    status=ScheduleStatus.DONE,
                    last_error=None,
                )
                logger.info("Scheduled publish completed")
                return True

            except Exception as e:
                logger.warning("Scheduled publish failed", error=describe_error(e))
                await session.rollback()
                await self._record_failure(session, entry, e)
                return False

    async def _load_story(self, session: AsyncSession, entry: ClaimedEntry) -> str:
        # Narrow select: publish columns may not exist in every deployment
        result = await session.execute(
            select(ContentSession.id, ContentSession.status, ContentSession.visibility)
            .where(ContentSession.id == entry.session_id)
        )
        if result.first() is None:
            raise NotFoundError("Content session not found")

        snippets = (
            await session.execute(
                select(SessionSnippet.content)
                .where(SessionSnippet.session_id == entry.session_id)
                .order_by(SessionSnippet.order_index, SessionSnippet.created_at)
            )
        ).scalars().all()

        text = "\n".join(content or "" for content in snippets)
        if not snippets or not text.strip():
            raise NotFoundError("Content session has no snippets")

        return text

    async def _analyze(self, text: str) -> StoryInsights:
        try:
            return await self.analyzer.analyze(text)
        except Exception as e:
            logger.warning(
                "Story analysis unavailable, using placeholder",
                error=describe_error(e),
            )
            return StoryInsights(rating=None, insights=self.settings.analysis_placeholder)

    async def _apply_publish_fields(
        self,
        session: AsyncSession,
        entry: ClaimedEntry,
        text: str,
        insights: StoryInsights,
    ) -> None:
        now = datetime.now(UTC)
        patch = {
            "visibility": entry.visibility,
            "published_at": now,
            "rating": insights.rating,
            "insights": insights.insights,
            "content_hash": content_hash(text),
            "analysis_updated_at": now,
        }

        table = ContentSession.__table__
        target = table.c.id == entry.session_id

        # status always exists (_load_story reads it); writing it first opens
        # the transaction the per-field savepoints nest in
        await session.execute(
            update(table).where(target).values(status=ContentStatus.APPROVED.value)
        )
        for field, value in patch.items():
            try:
                async with session.begin_nested():
                    await session.execute(
                        update(table).where(target).values({field: value})
                    )
            except DBAPIError as e:
                if not is_undefined_column_error(e):
                    raise
                logger.warning("Skipping publish field missing from schema", field=field)

        # One commit: any other write error leaves the content unpublished
        await session.commit()

    async def _add_publish_event(
        self, session: AsyncSession, entry: ClaimedEntry, insights: StoryInsights
    ) -> None:
        session.add(
            PublishEvent(
                session_id=entry.session_id,
                type=PublishEventType.PUBLISH.value,
                visibility=entry.visibility,
                scheduled_for=entry.run_at,
                rating=insights.rating,
                note=entry.note,
            )
        )

    async def _seed_metrics(self, session: AsyncSession, entry: ClaimedEntry) -> None:
        if await session.get(SessionMetrics, entry.session_id) is None:
            session.add(SessionMetrics(session_id=entry.session_id, impressions=0, views=0))

    async def _best_effort(
        self,
        session: AsyncSession,
        label: str,
        write: Callable[[], Awaitable[None]],
    ) -> None:
        """Run an auxiliary write in its own failure boundary."""
        try:
            await write()
            await session.commit()
        except Exception as e:
            await session.rollback()
            failure = SideEffectError(f"{label} write failed", details={"error": str(e)})
            logger.warning(failure.message, **failure.details)

    async def _finalize(
        self,
        session: AsyncSession,
        entry: ClaimedEntry,
        status: ScheduleStatus,
        last_error: str | None,
    ) -> None:
        # SQL-side increment: overlapping passes each count their attempt
        await session.execute(
            update(PublishScheduleEntry)
            .where(PublishScheduleEntry.id == entry.id)
            .values(
                status=status.value,
                attempts=PublishScheduleEntry.attempts + 1,
                last_error=last_error,
                updated_at=datetime.now(UTC),
            )
        )
        await session.commit()

    async def _record_failure(
        self,
        session: AsyncSession,
        entry: ClaimedEntry,
        error: Exception,
    ) -> None:
        message = describe_error(error)
        try:
            await self._finalize(
                session, entry, status=ScheduleStatus.FAILED, last_error=message
            )
        except Exception:
            await session.rollback()
            logger.exception("Could not record failed publish attempt")
            return

        await self._best_effort(
            session,
            "failure event",
            lambda: self._add_failure_event(session, entry, message),
        )

    async def _add_failure_event(
        self, session: AsyncSession, entry: ClaimedEntry, message: str
    ) -> None:
        session.add(
            PublishEvent(
                session_id=entry.session_id,
                type=PublishEventType.SCHEDULE.value,
                visibility=entry.visibility,
                scheduled_for=entry.run_at,
                note=f"FAILED: {message}",
            )
        )
