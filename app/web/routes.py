"""Server-rendered pages: dashboard, new-timeline wizard, timeline detail, sign-in.

Wizard actions are plain form posts that redirect back to the wizard page
(post/redirect/get). The draft id travels in a cookie.
"""

import math
import uuid
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from app.api.deps import get_draft_service, get_resources, get_timeline_service
from app.core.exceptions import DraftNotFoundError, EntryNotFoundError, InvalidTransitionError, WizardBusyError
from app.core.resources import AppResources
from app.domain.areas import AREA_OF_LAW_OPTIONS, area_label
from app.domain.files import ACCEPTED_EXTENSIONS, format_file_size
from app.services.timeline_service import TimelineService
from app.web.navigation import NAV_BELOW, NAV_ITEMS, active_item, show_chrome
from app.web.presenters import TimelineListView, build_list_view, short_date
from app.wizard.service import DraftService, read_incoming

logger = structlog.get_logger(__name__)

router = APIRouter()

TEMPLATE_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.filters["filesize"] = format_file_size
templates.env.filters["area_label"] = area_label
templates.env.filters["shortdate"] = short_date

DRAFT_COOKIE = "timeline_draft"
WIZARD_PATH = "/dashboard/newtimeline"


def _render(request: Request, resources: AppResources, name: str, status_code: int = 200, **context) -> Response:
    settings = resources.settings
    path = request.url.path
    return templates.TemplateResponse(
        request,
        name,
        {
            "app_name": settings.app_name,
            "show_chrome": show_chrome(path, settings.signin_path),
            "nav_items": NAV_ITEMS,
            "nav_below": NAV_BELOW,
            "active_nav": active_item(path),
            **context,
        },
        status_code=status_code,
    )


def _back_to_wizard() -> RedirectResponse:
    return RedirectResponse(WIZARD_PATH, status_code=303)


async def _run_action(request: Request, action) -> RedirectResponse:
    """Apply one wizard action to the cookie's draft and redirect back.

    Actions refused by the current step leave the draft untouched. A missing
    or expired draft drops the cookie so the next page load starts fresh.
    """
    draft_id = request.cookies.get(DRAFT_COOKIE)
    response = _back_to_wizard()
    if not draft_id:
        return response

    try:
        await action(draft_id)
    except DraftNotFoundError:
        response.delete_cookie(DRAFT_COOKIE)
    except (InvalidTransitionError, WizardBusyError, EntryNotFoundError) as exc:
        logger.info("wizard_action_refused", draft_id=draft_id, reason=str(exc))
    return response


# --- layout-level routes ---------------------------------------------------


@router.get("/", include_in_schema=False)
async def index():
    return RedirectResponse("/dashboard", status_code=307)


@router.get("/signin", include_in_schema=False)
async def signin(request: Request, resources: AppResources = Depends(get_resources)):
    return _render(request, resources, "signin.html")


# --- dashboard -------------------------------------------------------------


@router.get("/dashboard", include_in_schema=False)
async def dashboard(request: Request, resources: AppResources = Depends(get_resources)):
    return _render(
        request,
        resources,
        "dashboard.html",
        view=TimelineListView.loading(),
        poll_seconds=resources.settings.rows_poll_seconds,
    )


@router.get("/dashboard/rows", include_in_schema=False)
async def dashboard_rows(
    request: Request,
    service: TimelineService = Depends(get_timeline_service),
):
    """Table body for the dashboard, refreshed by the page on an interval."""
    try:
        timelines = await service.list_timelines()
    except Exception as exc:
        logger.error("timeline_list_failed", error=str(exc), error_type=type(exc).__name__)
        timelines = None

    return templates.TemplateResponse(request, "_timeline_rows.html", {"view": build_list_view(timelines)})


@router.get("/dashboard/timeline/{timeline_id}", include_in_schema=False)
async def timeline_detail(
    timeline_id: str,
    request: Request,
    resources: AppResources = Depends(get_resources),
    service: TimelineService = Depends(get_timeline_service),
):
    try:
        timeline = await service.get_timeline(uuid.UUID(timeline_id))
    except ValueError:
        timeline = None

    return _render(
        request,
        resources,
        "timeline_detail.html",
        status_code=200 if timeline else 404,
        timeline=timeline,
    )


# --- new-timeline wizard ---------------------------------------------------


@router.get(WIZARD_PATH, include_in_schema=False)
async def new_timeline(
    request: Request,
    resources: AppResources = Depends(get_resources),
    service: DraftService = Depends(get_draft_service),
):
    draft_id, state = await service.resume_or_start(request.cookies.get(DRAFT_COOKIE))
    response = _render(
        request,
        resources,
        "new_timeline.html",
        state=state,
        base=WIZARD_PATH,
        busy=state.is_uploading or state.is_submitting,
        area_options=AREA_OF_LAW_OPTIONS,
        accept=",".join(ACCEPTED_EXTENSIONS),
        reset_refresh_seconds=math.ceil(resources.settings.success_reset_delay_seconds),
    )
    response.set_cookie(
        DRAFT_COOKIE,
        draft_id,
        max_age=resources.settings.draft_ttl_seconds,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post(f"{WIZARD_PATH}/form", include_in_schema=False)
async def wizard_form(
    request: Request,
    case_name: str = Form(""),
    area_of_law: str = Form(""),
    action: str = Form("next"),
    service: DraftService = Depends(get_draft_service),
):
    async def apply(draft_id: str) -> None:
        if action == "reset":
            await service.reset_form(draft_id)
            return
        await service.update_form(draft_id, case_name=case_name, area_of_law=area_of_law)
        await service.next_step(draft_id)

    return await _run_action(request, apply)


@router.post(f"{WIZARD_PATH}/back", include_in_schema=False)
async def wizard_back(request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, service.back)


@router.post(f"{WIZARD_PATH}/stage", include_in_schema=False)
async def wizard_stage(
    request: Request,
    files: list[UploadFile] = File(default=[]),
    service: DraftService = Depends(get_draft_service),
):
    incoming = await read_incoming(files)

    async def apply(draft_id: str) -> None:
        if incoming:
            await service.stage(draft_id, incoming)

    return await _run_action(request, apply)


@router.post(f"{WIZARD_PATH}/staged/clear", include_in_schema=False)
async def wizard_clear_staged(request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, service.clear_staged)


@router.post(f"{WIZARD_PATH}/staged/{{index}}/remove", include_in_schema=False)
async def wizard_remove_staged(index: int, request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, lambda draft_id: service.remove_staged(draft_id, index))


@router.get(f"{WIZARD_PATH}/preview/{{staged_id}}", include_in_schema=False)
async def wizard_preview(staged_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    draft_id = request.cookies.get(DRAFT_COOKIE)
    if not draft_id:
        return Response(status_code=404)
    try:
        data, media_type = await service.preview(draft_id, staged_id)
    except (DraftNotFoundError, EntryNotFoundError):
        return Response(status_code=404)
    return Response(content=data, media_type=media_type, headers={"Cache-Control": "no-store"})


@router.post(f"{WIZARD_PATH}/upload", include_in_schema=False)
async def wizard_upload(request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, service.upload)


@router.post(f"{WIZARD_PATH}/edit", include_in_schema=False)
async def wizard_edit(request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, service.edit)


@router.post(f"{WIZARD_PATH}/uploaded/{{index}}/retry", include_in_schema=False)
async def wizard_retry(index: int, request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, lambda draft_id: service.retry(draft_id, index))


@router.post(f"{WIZARD_PATH}/uploaded/{{index}}/remove", include_in_schema=False)
async def wizard_remove_uploaded(index: int, request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, lambda draft_id: service.remove_uploaded(draft_id, index))


@router.post(f"{WIZARD_PATH}/submit", include_in_schema=False)
async def wizard_submit(request: Request, service: DraftService = Depends(get_draft_service)):
    return await _run_action(request, service.submit)
