"""Tests for DraftService: the wizard run against Redis drafts, storage and the database."""

import asyncio
import io
from datetime import UTC, datetime, timedelta

import pytest
from starlette.datastructures import Headers, UploadFile

from app.core.exceptions import DraftNotFoundError, EntryNotFoundError, InvalidTransitionError
from app.wizard.models import WizardStep
from app.wizard.service import DraftService, IncomingFile, read_incoming
from app.wizard.store import DraftStore

pytestmark = pytest.mark.unit

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

PDF = IncomingFile("a.pdf", "application/pdf", b"%PDF-1.4 brief")
PNG = IncomingFile("b.png", "image/png", b"\x89PNG photo")


async def at_upload(draft_service) -> str:
    draft_id, _ = await draft_service.start()
    await draft_service.update_form(draft_id, case_name="Smith v. Jones", area_of_law="civil")
    state = await draft_service.next_step(draft_id)
    assert state.step == WizardStep.UPLOAD
    return draft_id


async def test_start_creates_empty_draft(draft_service):
    draft_id, state = await draft_service.start()

    assert state.step == WizardStep.FORM
    assert (await draft_service.get(draft_id)).form.case_name == ""


async def test_resume_or_start_reuses_live_draft(draft_service):
    draft_id, _ = await draft_service.start()
    await draft_service.update_form(draft_id, case_name="Kept")

    resumed_id, state = await draft_service.resume_or_start(draft_id)

    assert resumed_id == draft_id
    assert state.form.case_name == "Kept"


async def test_resume_or_start_replaces_missing_draft(draft_service):
    new_id, state = await draft_service.resume_or_start("expired")

    assert new_id != "expired"
    assert state.step == WizardStep.FORM


async def test_unknown_draft_raises(draft_service):
    with pytest.raises(DraftNotFoundError):
        await draft_service.update_form("missing", case_name="x")


async def test_form_state_persists_between_calls(draft_service):
    draft_id, _ = await draft_service.start()
    await draft_service.update_form(draft_id, case_name="Doe Estate")
    await draft_service.update_form(draft_id, area_of_law="family")

    state = await draft_service.get(draft_id)

    assert state.form.case_name == "Doe Estate"
    assert state.form.area_of_law == "family"


async def test_next_step_validation_message_is_saved(draft_service):
    draft_id, _ = await draft_service.start()

    await draft_service.next_step(draft_id)
    state = await draft_service.get(draft_id)

    assert state.step == WizardStep.FORM
    assert state.status == "Please enter a case name."


async def test_read_incoming_skips_empty_file_inputs():
    """Browsers post an unnamed empty part when no file was chosen."""
    parts = [
        UploadFile(io.BytesIO(b"%PDF-1.4"), filename="a.pdf", headers=Headers({"content-type": "application/pdf"})),
        UploadFile(io.BytesIO(b""), filename=""),
    ]

    incoming = await read_incoming(parts)

    assert incoming == [IncomingFile("a.pdf", "application/pdf", b"%PDF-1.4")]


async def test_stage_stores_bytes_and_metadata(draft_service, draft_store):
    draft_id = await at_upload(draft_service)

    state = await draft_service.stage(draft_id, [PDF, PNG])

    assert [s.file_name for s in state.staged] == ["a.pdf", "b.png"]
    assert state.staged[0].size == len(PDF.data)
    assert state.staged[0].has_preview is False
    assert state.staged[1].has_preview is True
    assert await draft_store.get_blob(draft_id, state.staged[1].id) == PNG.data


async def test_remove_staged_releases_bytes(draft_service, draft_store):
    draft_id = await at_upload(draft_service)
    state = await draft_service.stage(draft_id, [PDF, PNG])
    removed_id = state.staged[0].id

    state = await draft_service.remove_staged(draft_id, 0)

    assert [s.file_name for s in state.staged] == ["b.png"]
    assert await draft_store.get_blob(draft_id, removed_id) is None


async def test_clear_staged_releases_all_bytes(draft_service, draft_store):
    draft_id = await at_upload(draft_service)
    state = await draft_service.stage(draft_id, [PDF, PNG])
    ids = [s.id for s in state.staged]

    state = await draft_service.clear_staged(draft_id)

    assert state.staged == []
    for staged_id in ids:
        assert await draft_store.get_blob(draft_id, staged_id) is None


async def test_preview_returns_image_bytes(draft_service):
    draft_id = await at_upload(draft_service)
    state = await draft_service.stage(draft_id, [PDF, PNG])

    data, mime = await draft_service.preview(draft_id, state.staged[1].id)

    assert data == PNG.data
    assert mime == "image/png"


async def test_preview_of_non_image_raises(draft_service):
    draft_id = await at_upload(draft_service)
    state = await draft_service.stage(draft_id, [PDF])

    with pytest.raises(EntryNotFoundError):
        await draft_service.preview(draft_id, state.staged[0].id)


async def test_upload_sends_staged_bytes_to_storage(draft_service, fake_storage):
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF, PNG])

    state = await draft_service.upload(draft_id)

    assert state.step == WizardStep.REVIEW
    assert sorted(fake_storage.uploads) == sorted([
        ("a.pdf", PDF.data, "application/pdf"),
        ("b.png", PNG.data, "image/png"),
    ])
    assert all(r.url.startswith("https://files.test/") for r in state.uploaded)


async def test_upload_with_expired_bytes_marks_entry_failed(draft_service, draft_store, fake_storage):
    draft_id = await at_upload(draft_service)
    state = await draft_service.stage(draft_id, [PDF])
    await draft_store.delete_blobs(draft_id, [state.staged[0].id])

    state = await draft_service.upload(draft_id)

    assert state.uploaded[0].failed is True
    assert fake_storage.uploads == []


async def test_retry_after_storage_recovers(draft_service, fake_storage):
    fake_storage.failing.add("b.png")
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF, PNG])
    state = await draft_service.upload(draft_id)
    assert state.uploaded[1].failed is True

    fake_storage.failing.clear()
    state = await draft_service.retry(draft_id, 1)

    assert state.uploaded[1].failed is False
    assert state.status == "Retry complete"


async def test_edit_returns_to_upload(draft_service):
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF])
    await draft_service.upload(draft_id)

    state = await draft_service.edit(draft_id)

    assert state.step == WizardStep.UPLOAD
    assert len(state.staged) == 1


async def test_remove_uploaded(draft_service):
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF, PNG])
    await draft_service.upload(draft_id)

    state = await draft_service.remove_uploaded(draft_id, 0)

    assert [r.file_name for r in state.uploaded] == ["b.png"]


async def test_submit_creates_timeline_and_releases_bytes(
    draft_service, draft_store, timeline_service
):
    draft_id = await at_upload(draft_service)
    staged = (await draft_service.stage(draft_id, [PDF, PNG])).staged
    await draft_service.upload(draft_id)

    state, timeline_id = await draft_service.submit(draft_id, now=NOW)

    assert timeline_id is not None
    assert state.status == "Timeline created successfully!"
    assert state.uploaded == []
    for s in staged:
        assert await draft_store.get_blob(draft_id, s.id) is None

    timeline = await timeline_service.get_timeline(timeline_id)
    assert timeline.case_name == "Smith v. Jones"
    assert [f.file_name for f in timeline.files] == ["a.pdf", "b.png"]
    assert [f.size for f in timeline.files] == [len(PDF.data), len(PNG.data)]


async def test_submit_returns_to_form_after_delay(draft_service):
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF])
    await draft_service.upload(draft_id)
    await draft_service.submit(draft_id, now=NOW)

    early = await draft_service.get(draft_id, now=NOW + timedelta(seconds=1))
    assert early.step == WizardStep.REVIEW
    assert early.status == "Timeline created successfully!"

    later = await draft_service.get(draft_id, now=NOW + timedelta(seconds=2))
    assert later.step == WizardStep.FORM
    assert later.status is None


async def test_submit_failure_keeps_draft(draft_service, timeline_service):
    async def broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    timeline_service.create_timeline = broken
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF])
    await draft_service.upload(draft_id)

    state, timeline_id = await draft_service.submit(draft_id, now=NOW)

    assert timeline_id is None
    assert state.status == "Failed to create timeline. Please try again."
    assert len(state.uploaded) == 1
    assert len(state.staged) == 1


async def test_invalid_transition_leaves_draft_unchanged(draft_service):
    draft_id, _ = await draft_service.start()

    with pytest.raises(InvalidTransitionError):
        await draft_service.edit(draft_id)

    assert (await draft_service.get(draft_id)).step == WizardStep.FORM


async def test_discard_deletes_draft(draft_service):
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF])

    await draft_service.discard(draft_id)

    with pytest.raises(DraftNotFoundError):
        await draft_service.get(draft_id)


# ============================================================================
# Interrupted operations
# ============================================================================


async def test_failed_stage_leaves_no_orphaned_bytes(draft_service, redis, break_redis_transactions):
    """If the draft cannot be saved, none of the staged bytes are kept either."""
    draft_id = await at_upload(draft_service)

    restore = break_redis_transactions()
    with pytest.raises(ConnectionError):
        await draft_service.stage(draft_id, [PDF, PNG])
    restore()

    blob_keys = [k async for k in redis.scan_iter(match=f"{DraftStore.KEY_PREFIX}{draft_id}:blob:*")]
    assert blob_keys == []
    assert (await draft_service.get(draft_id)).staged == []


async def test_cancelled_upload_does_not_leave_draft_busy(draft_service, fake_storage):
    """A request torn down mid-upload saves the cleared flag so the draft stays usable."""
    started = asyncio.Event()

    async def hanging_upload(file_name, data, content_type=None):
        started.set()
        await asyncio.Event().wait()

    fake_storage.upload = hanging_upload
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF])

    task = asyncio.create_task(draft_service.upload(draft_id))
    await started.wait()
    assert (await draft_service.get(draft_id)).is_uploading is True
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    state = await draft_service.get(draft_id)
    assert state.is_uploading is False
    assert state.busy_since is None
    assert state.step == WizardStep.UPLOAD
    assert state.status == "The previous operation was interrupted. Please try again."

    state = await draft_service.back(draft_id)
    assert state.step == WizardStep.FORM


async def test_cancelled_submit_allows_submitting_again(draft_service, timeline_service):
    started = asyncio.Event()
    create_timeline = timeline_service.create_timeline

    async def hanging_create(*args, **kwargs):
        started.set()
        await asyncio.Event().wait()

    timeline_service.create_timeline = hanging_create
    draft_id = await at_upload(draft_service)
    await draft_service.stage(draft_id, [PDF])
    await draft_service.upload(draft_id)

    task = asyncio.create_task(draft_service.submit(draft_id, now=NOW))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert (await draft_service.get(draft_id)).is_submitting is False

    timeline_service.create_timeline = create_timeline
    state, timeline_id = await draft_service.submit(draft_id, now=NOW)
    assert timeline_id is not None
    assert state.status == "Timeline created successfully!"


async def test_refused_upload_does_not_report_interruption(draft_service):
    """A guard refusal is not an interruption and leaves the status alone."""
    draft_id, _ = await draft_service.start()

    with pytest.raises(InvalidTransitionError):
        await draft_service.upload(draft_id)

    assert (await draft_service.get(draft_id)).status is None


async def test_stale_busy_draft_is_released_on_read(draft_store, fake_storage, timeline_service):
    """A draft whose worker died mid-upload is freed once the busy timeout passes."""
    service = DraftService(
        store=draft_store, storage=fake_storage, timelines=timeline_service, busy_timeout=30
    )
    draft_id = await at_upload(service)
    state = await draft_store.load(draft_id)
    state.is_uploading = True
    state.busy_since = NOW
    await draft_store.save(draft_id, state)

    assert (await service.get(draft_id, now=NOW + timedelta(seconds=10))).is_uploading is True

    state = await service.get(draft_id, now=NOW + timedelta(seconds=31))
    assert state.is_uploading is False
    assert state.status == "The previous operation was interrupted. Please try again."
