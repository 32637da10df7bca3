"""DraftService: runs the upload wizard against Redis drafts.

Each call loads the draft, applies any pending post-success reset, performs
one wizard action and saves the result. Staged bytes are read from the draft
store when uploading and released when a file is removed, the batch is
cleared, the timeline is created or the draft is discarded.
"""

import uuid
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import structlog
from fastapi import UploadFile

from app.core.exceptions import EntryNotFoundError, StorageUploadError, WizardError
from app.domain.files import is_previewable
from app.schemas.timeline import FileIn
from app.services.timeline_service import TimelineService
from app.storage.object_storage import FileStorage
from app.wizard.models import CaseForm, StagedFile, WizardState
from app.wizard.state_machine import DEFAULT_BUSY_TIMEOUT, DEFAULT_SUCCESS_DELAY, UploadWizard
from app.wizard.store import DraftStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    """A file received from the client, before staging."""

    file_name: str
    content_type: str | None
    data: bytes


async def read_incoming(files: list[UploadFile]) -> list[IncomingFile]:
    """Read uploaded form parts, skipping empty file inputs."""
    incoming = []
    for upload in files:
        if not upload.filename:
            continue
        incoming.append(
            IncomingFile(
                file_name=upload.filename,
                content_type=upload.content_type,
                data=await upload.read(),
            )
        )
    return incoming


class DraftService:
    """Service layer for wizard drafts."""

    def __init__(
        self,
        store: DraftStore,
        storage: FileStorage,
        timelines: TimelineService,
        success_delay: float = DEFAULT_SUCCESS_DELAY,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ):
        self.store = store
        self.storage = storage
        self.timelines = timelines
        self.success_delay = success_delay
        self.busy_timeout = busy_timeout

    async def _open(self, draft_id: str, now: datetime | None = None) -> UploadWizard:
        state = await self.store.load(draft_id)

        async def checkpoint(current: WizardState) -> None:
            await self.store.save(draft_id, current)

        wizard = UploadWizard(
            state,
            success_delay=self.success_delay,
            checkpoint=checkpoint,
            busy_timeout=self.busy_timeout,
        )
        wizard.settle(now)
        return wizard

    async def _in_flight(self, draft_id: str, wizard: UploadWizard, operation: Awaitable):
        """Await a long wizard operation whose busy flag is already checkpointed.

        If the operation is cancelled or fails unexpectedly, the cleared flags
        are saved before re-raising so the draft does not stay busy.
        """
        try:
            return await operation
        except WizardError:
            raise
        except BaseException:
            wizard.mark_idle()
            wizard.state.status = "The previous operation was interrupted. Please try again."
            await self.store.save(draft_id, wizard.state)
            logger.warning("draft_operation_interrupted", draft_id=draft_id)
            raise

    def _uploader(self, draft_id: str):
        async def upload(staged: StagedFile) -> str:
            data = await self.store.get_blob(draft_id, staged.id)
            if data is None:
                raise StorageUploadError(staged.file_name, "staged file has expired")
            return await self.storage.upload(staged.file_name, data, staged.mime)

        return upload

    async def _create_timeline(self, form: CaseForm, files: list[FileIn]) -> UUID:
        return await self.timelines.create_timeline(form.case_name, form.area_of_law, files)

    # ------------------------------------------------------------------
    # Draft lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> tuple[str, WizardState]:
        state = WizardState()
        draft_id = await self.store.create(state)
        logger.info("draft_started", draft_id=draft_id)
        return draft_id, state

    async def resume_or_start(self, draft_id: str | None) -> tuple[str, WizardState]:
        """Return an existing draft, or a fresh one if the id is missing or expired."""
        if draft_id and await self.store.exists(draft_id):
            return draft_id, await self.get(draft_id)
        return await self.start()

    async def get(self, draft_id: str, now: datetime | None = None) -> WizardState:
        wizard = await self._open(draft_id, now)
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def discard(self, draft_id: str) -> None:
        await self.store.load(draft_id)
        await self.store.delete(draft_id)
        logger.info("draft_discarded", draft_id=draft_id)

    # ------------------------------------------------------------------
    # Form step
    # ------------------------------------------------------------------

    async def update_form(
        self,
        draft_id: str,
        case_name: str | None = None,
        area_of_law: str | None = None,
    ) -> WizardState:
        wizard = await self._open(draft_id)
        wizard.update_form(case_name=case_name, area_of_law=area_of_law)
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def reset_form(self, draft_id: str) -> WizardState:
        wizard = await self._open(draft_id)
        wizard.reset_form()
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def next_step(self, draft_id: str) -> WizardState:
        wizard = await self._open(draft_id)
        wizard.next()
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    # ------------------------------------------------------------------
    # Upload step
    # ------------------------------------------------------------------

    async def back(self, draft_id: str) -> WizardState:
        wizard = await self._open(draft_id)
        wizard.back()
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def stage(self, draft_id: str, files: list[IncomingFile]) -> WizardState:
        wizard = await self._open(draft_id)
        staged = [
            StagedFile(
                id=uuid.uuid4().hex,
                file_name=f.file_name,
                size=len(f.data),
                mime=f.content_type,
                has_preview=is_previewable(f.content_type),
            )
            for f in files
        ]
        wizard.stage(staged)

        blobs = {entry.id: incoming.data for entry, incoming in zip(staged, files)}
        await self.store.save(draft_id, wizard.state, blobs=blobs)

        logger.info("files_staged", draft_id=draft_id, count=len(staged))
        return wizard.state

    async def remove_staged(self, draft_id: str, index: int) -> WizardState:
        wizard = await self._open(draft_id)
        removed = wizard.remove_staged(index)
        await self.store.delete_blobs(draft_id, [removed.id])
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def clear_staged(self, draft_id: str) -> WizardState:
        wizard = await self._open(draft_id)
        removed = wizard.clear_staged()
        await self.store.delete_blobs(draft_id, [s.id for s in removed])
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def upload(self, draft_id: str) -> WizardState:
        wizard = await self._open(draft_id)
        await self._in_flight(draft_id, wizard, wizard.upload_all(self._uploader(draft_id)))
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def preview(self, draft_id: str, staged_id: str) -> tuple[bytes, str]:
        """Bytes and content type of a staged image.

        Raises:
            EntryNotFoundError: no previewable staged file with that id
        """
        state = await self.store.load(draft_id)
        staged = next((s for s in state.staged if s.id == staged_id and s.has_preview), None)
        if staged is None:
            raise EntryNotFoundError("preview", staged_id)

        data = await self.store.get_blob(draft_id, staged_id)
        if data is None:
            raise EntryNotFoundError("preview", staged_id)
        return data, staged.mime or "application/octet-stream"

    # ------------------------------------------------------------------
    # Review step
    # ------------------------------------------------------------------

    async def edit(self, draft_id: str) -> WizardState:
        wizard = await self._open(draft_id)
        wizard.edit()
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def retry(self, draft_id: str, index: int) -> WizardState:
        wizard = await self._open(draft_id)
        await self._in_flight(draft_id, wizard, wizard.retry(index, self._uploader(draft_id)))
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def remove_uploaded(self, draft_id: str, index: int) -> WizardState:
        wizard = await self._open(draft_id)
        wizard.remove_uploaded(index)
        await self.store.save(draft_id, wizard.state)
        return wizard.state

    async def submit(self, draft_id: str, now: datetime | None = None) -> tuple[WizardState, UUID | None]:
        """Create the timeline from the draft.

        Returns:
            The updated state and the new timeline id (None if nothing was created)
        """
        wizard = await self._open(draft_id, now)
        staged_ids = [s.id for s in wizard.state.staged]

        timeline_id = await self._in_flight(draft_id, wizard, wizard.submit(self._create_timeline, now=now))
        if timeline_id is not None:
            await self.store.delete_blobs(draft_id, staged_ids)
            logger.info("draft_submitted", draft_id=draft_id, timeline_id=str(timeline_id))

        await self.store.save(draft_id, wizard.state)
        return wizard.state, timeline_id
