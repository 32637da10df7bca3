"""View models for the dashboard table and timeline detail page."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.domain.areas import area_label
from app.domain.files import format_file_size
from app.schemas.timeline import TimelineWithFiles


class ListState(str, Enum):
    """The four disjoint states of the timeline table."""

    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class TimelineRow:
    id: str
    case_name: str
    area_label: str
    file_count: int
    first_file_name: str | None
    first_file_size: str | None
    created: str

    @property
    def more_files(self) -> int:
        return max(self.file_count - 1, 0)


@dataclass
class TimelineListView:
    state: ListState
    rows: list[TimelineRow] = field(default_factory=list)

    @classmethod
    def loading(cls) -> "TimelineListView":
        return cls(state=ListState.LOADING)


def short_date(value: datetime) -> str:
    """m/d/yyyy without zero padding, e.g. 8/9/2025."""
    return f"{value.month}/{value.day}/{value.year}"


def to_row(timeline: TimelineWithFiles) -> TimelineRow:
    first = timeline.files[0] if timeline.files else None
    return TimelineRow(
        id=str(timeline.id),
        case_name=timeline.case_name,
        area_label=area_label(timeline.area_of_law),
        file_count=len(timeline.files),
        first_file_name=first.file_name if first else None,
        first_file_size=format_file_size(first.size) if first else None,
        created=short_date(timeline.created_at),
    )


def build_list_view(timelines: list[TimelineWithFiles] | None) -> TimelineListView:
    """Map a list-query result onto a table state.

    None means the query failed; an empty list is the empty state, not an error.
    """
    if timelines is None:
        return TimelineListView(state=ListState.ERROR)
    if not timelines:
        return TimelineListView(state=ListState.EMPTY)
    return TimelineListView(state=ListState.POPULATED, rows=[to_row(t) for t in timelines])
