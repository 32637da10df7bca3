"""TimelineService: creates timelines with their files and lists them back.

Create inserts one Timeline row and one TimelineFile row per file inside a
single transaction, every row stamped with the same timestamp. Listing returns
timelines newest-first with their files joined through one batched lookup.
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models.file import TimelineFile
from app.db.models.timeline import Timeline
from app.schemas.timeline import FileIn, FileOut, TimelineWithFiles

logger = structlog.get_logger(__name__)


class TimelineService:
    """Create and list timelines.

    Takes an injected session factory so tests can point it at any engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_timeline(
        self,
        case_name: str,
        area_of_law: str,
        files: Iterable[FileIn],
        now: datetime | None = None,
    ) -> UUID:
        """Insert a timeline and its files. Returns the new timeline id.

        No validation beyond type shape: duplicate names, empty URLs and any
        size are stored as given.

        Args:
            case_name: Case title
            area_of_law: Area-of-law value
            files: Files already uploaded to object storage
            now: Creation timestamp (for deterministic testing)
        """
        now = now or datetime.now(UTC)
        files = list(files)

        async with self.session_factory() as session:
            async with session.begin():
                timeline = Timeline(
                    case_name=case_name,
                    area_of_law=area_of_law,
                    created_at=now,
                    updated_at=now,
                )
                session.add(timeline)
                await session.flush()

                for position, file in enumerate(files):
                    session.add(
                        TimelineFile(
                            timeline_id=timeline.id,
                            file_name=file.file_name,
                            url=file.url,
                            size=file.size,
                            position=position,
                            created_at=now,
                            updated_at=now,
                        )
                    )

            timeline_id = timeline.id

        logger.info(
            "timeline_created",
            timeline_id=str(timeline_id),
            area_of_law=area_of_law,
            file_count=len(files),
        )
        return timeline_id

    async def list_timelines(self) -> list[TimelineWithFiles]:
        """All timelines, newest first, each with its files."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Timeline).order_by(Timeline.created_at.desc(), Timeline.id.desc())
            )
            timelines = result.scalars().all()
            files_by_timeline = await self._files_for(session, [t.id for t in timelines])

        return [
            _with_files(timeline, files_by_timeline.get(timeline.id, []))
            for timeline in timelines
        ]

    async def get_timeline(self, timeline_id: UUID) -> TimelineWithFiles | None:
        """One timeline with its files, or None if it does not exist."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Timeline).where(Timeline.id == timeline_id)
            )
            timeline = result.scalar_one_or_none()
            if timeline is None:
                return None
            files_by_timeline = await self._files_for(session, [timeline.id])

        return _with_files(timeline, files_by_timeline.get(timeline.id, []))

    async def _files_for(
        self,
        session: AsyncSession,
        timeline_ids: list[UUID],
    ) -> dict[UUID, list[TimelineFile]]:
        """Fetch files for a set of timelines in one query, grouped by parent id."""
        if not timeline_ids:
            return {}

        result = await session.execute(
            select(TimelineFile)
            .where(TimelineFile.timeline_id.in_(timeline_ids))
            .order_by(TimelineFile.created_at, TimelineFile.position)
        )

        grouped: dict[UUID, list[TimelineFile]] = defaultdict(list)
        for file in result.scalars().all():
            grouped[file.timeline_id].append(file)
        return grouped


def _with_files(timeline: Timeline, files: list[TimelineFile]) -> TimelineWithFiles:
    return TimelineWithFiles(
        id=timeline.id,
        case_name=timeline.case_name,
        area_of_law=timeline.area_of_law,
        created_at=timeline.created_at,
        updated_at=timeline.updated_at,
        files=[FileOut.model_validate(f) for f in files],
    )
