"""Upload wizard API: one endpoint per wizard action.

Every mutating endpoint returns the full DraftResponse so clients can render
from it directly. Unknown drafts and entries are 404; actions not allowed
from the current step, or attempted while an upload or submission is in
flight, are 409 (see the WizardError handler in app.main).
"""

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile

from app.api.deps import get_draft_service
from app.schemas.draft import DraftResponse, FormUpdate, SubmitResponse
from app.wizard.service import DraftService, read_incoming

router = APIRouter()


def _respond(request: Request, draft_id: str, state) -> DraftResponse:
    preview_base = str(request.url_for("get_draft", draft_id=draft_id).path) + "/staged"
    return DraftResponse.from_state(draft_id, state, preview_base=preview_base)


@router.post("", response_model=DraftResponse, status_code=201)
async def start_draft(request: Request, service: DraftService = Depends(get_draft_service)):
    draft_id, state = await service.start()
    return _respond(request, draft_id, state)


@router.get("/{draft_id}", response_model=DraftResponse)
async def get_draft(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    state = await service.get(draft_id)
    return _respond(request, draft_id, state)


@router.delete("/{draft_id}", status_code=204)
async def discard_draft(draft_id: str, service: DraftService = Depends(get_draft_service)):
    await service.discard(draft_id)
    return Response(status_code=204)


# --- form step -------------------------------------------------------------


@router.put("/{draft_id}/form", response_model=DraftResponse)
async def update_form(
    draft_id: str,
    payload: FormUpdate,
    request: Request,
    service: DraftService = Depends(get_draft_service),
):
    state = await service.update_form(draft_id, case_name=payload.case_name, area_of_law=payload.area_of_law)
    return _respond(request, draft_id, state)


@router.post("/{draft_id}/form/reset", response_model=DraftResponse)
async def reset_form(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    state = await service.reset_form(draft_id)
    return _respond(request, draft_id, state)


@router.post("/{draft_id}/next", response_model=DraftResponse)
async def next_step(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    """Validate the form and move to the upload step (status explains a refusal)."""
    state = await service.next_step(draft_id)
    return _respond(request, draft_id, state)


# --- upload step -----------------------------------------------------------


@router.post("/{draft_id}/back", response_model=DraftResponse)
async def back(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    state = await service.back(draft_id)
    return _respond(request, draft_id, state)


@router.post("/{draft_id}/staged", response_model=DraftResponse)
async def stage_files(
    draft_id: str,
    request: Request,
    files: list[UploadFile] = File(...),
    service: DraftService = Depends(get_draft_service),
):
    """Stage more files; earlier selections are kept."""
    state = await service.stage(draft_id, await read_incoming(files))
    return _respond(request, draft_id, state)


@router.delete("/{draft_id}/staged", response_model=DraftResponse)
async def clear_staged(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    state = await service.clear_staged(draft_id)
    return _respond(request, draft_id, state)


@router.delete("/{draft_id}/staged/{index}", response_model=DraftResponse)
async def remove_staged(
    draft_id: str,
    index: int,
    request: Request,
    service: DraftService = Depends(get_draft_service),
):
    state = await service.remove_staged(draft_id, index)
    return _respond(request, draft_id, state)


@router.get("/{draft_id}/staged/{staged_id}/preview")
async def preview_staged(draft_id: str, staged_id: str, service: DraftService = Depends(get_draft_service)):
    data, media_type = await service.preview(draft_id, staged_id)
    return Response(content=data, media_type=media_type, headers={"Cache-Control": "no-store"})


@router.post("/{draft_id}/upload", response_model=DraftResponse)
async def upload_files(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    """Upload every staged file concurrently, then move to review."""
    state = await service.upload(draft_id)
    return _respond(request, draft_id, state)


# --- review step -----------------------------------------------------------


@router.post("/{draft_id}/edit", response_model=DraftResponse)
async def edit(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    state = await service.edit(draft_id)
    return _respond(request, draft_id, state)


@router.post("/{draft_id}/uploaded/{index}/retry", response_model=DraftResponse)
async def retry_upload(
    draft_id: str,
    index: int,
    request: Request,
    service: DraftService = Depends(get_draft_service),
):
    state = await service.retry(draft_id, index)
    return _respond(request, draft_id, state)


@router.delete("/{draft_id}/uploaded/{index}", response_model=DraftResponse)
async def remove_uploaded(
    draft_id: str,
    index: int,
    request: Request,
    service: DraftService = Depends(get_draft_service),
):
    state = await service.remove_uploaded(draft_id, index)
    return _respond(request, draft_id, state)


@router.post("/{draft_id}/submit", response_model=SubmitResponse)
async def submit(draft_id: str, request: Request, service: DraftService = Depends(get_draft_service)):
    """Create the timeline. A failed create leaves the draft intact for another try."""
    state, timeline_id = await service.submit(draft_id)
    return SubmitResponse(
        draft=_respond(request, draft_id, state),
        timeline_id=str(timeline_id) if timeline_id else None,
    )
