"""FastAPI dependencies that hand services to route handlers.

Override these via app.dependency_overrides in tests.
"""

from fastapi import Depends, Request

from app.core.resources import AppResources
from app.services.timeline_service import TimelineService
from app.wizard.service import DraftService
from app.wizard.store import DraftStore


def get_resources(request: Request) -> AppResources:
    return request.app.state.resources


def get_timeline_service(resources: AppResources = Depends(get_resources)) -> TimelineService:
    return TimelineService(resources.database.session_factory)


def get_draft_service(
    resources: AppResources = Depends(get_resources),
    timelines: TimelineService = Depends(get_timeline_service),
) -> DraftService:
    settings = resources.settings
    return DraftService(
        store=DraftStore(resources.redis.client, ttl=settings.draft_ttl_seconds),
        storage=resources.storage,
        timelines=timelines,
        success_delay=settings.success_reset_delay_seconds,
        busy_timeout=settings.busy_timeout_seconds,
    )
