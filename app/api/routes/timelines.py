"""Timeline API endpoints.

POST /api/timelines       - Create a timeline with its already-uploaded files
GET  /api/timelines       - All timelines, newest first, files joined
GET  /api/timelines/{id}  - One timeline with its files
"""

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_timeline_service
from app.schemas.timeline import TimelineCreate, TimelineCreated, TimelineWithFiles
from app.services.timeline_service import TimelineService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("", response_model=TimelineCreated, status_code=201)
async def create_timeline(
    payload: TimelineCreate,
    service: TimelineService = Depends(get_timeline_service),
) -> TimelineCreated:
    """Insert one timeline and a file row for every supplied file."""
    timeline_id = await service.create_timeline(
        case_name=payload.case_name,
        area_of_law=payload.area_of_law,
        files=payload.files,
    )
    return TimelineCreated(timeline_id=timeline_id)


@router.get("", response_model=list[TimelineWithFiles])
async def list_timelines(
    service: TimelineService = Depends(get_timeline_service),
) -> list[TimelineWithFiles]:
    """List every timeline, newest first, each with its files."""
    return await service.list_timelines()


@router.get("/{timeline_id}", response_model=TimelineWithFiles)
async def get_timeline(
    timeline_id: uuid.UUID,
    service: TimelineService = Depends(get_timeline_service),
) -> TimelineWithFiles:
    timeline = await service.get_timeline(timeline_id)
    if timeline is None:
        raise HTTPException(status_code=404, detail="Timeline not found")
    return timeline
