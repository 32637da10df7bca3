"""Upload wizard state machine: form -> upload -> review.

The machine owns no I/O. Uploading one file and creating the timeline are
injected as async callables, so the same code drives the API, the web pages
and the tests.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog

from app.core.exceptions import EntryNotFoundError, InvalidTransitionError, WizardBusyError
from app.schemas.timeline import FileIn
from app.wizard.models import CaseForm, StagedFile, UploadResult, WizardState, WizardStep

logger = structlog.get_logger(__name__)

# Returns the public URL of the stored file, raises on failure
UploadFn = Callable[[StagedFile], Awaitable[str]]
# Creates the timeline and returns its id, raises on failure
CreateFn = Callable[[CaseForm, list[FileIn]], Awaitable[UUID]]
# Persists intermediate state while a long operation is in flight
CheckpointFn = Callable[[WizardState], Awaitable[None]]

DEFAULT_SUCCESS_DELAY = 1.5
# An upload or submission busy for longer than this is treated as interrupted
DEFAULT_BUSY_TIMEOUT = 300.0


class UploadWizard:
    """Manages wizard transitions over a WizardState."""

    # Valid step transitions
    TRANSITIONS = {
        WizardStep.FORM: [WizardStep.UPLOAD],
        WizardStep.UPLOAD: [WizardStep.FORM, WizardStep.REVIEW],
        WizardStep.REVIEW: [WizardStep.UPLOAD, WizardStep.FORM],  # edit, or reset after success
    }

    def __init__(
        self,
        state: WizardState | None = None,
        success_delay: float = DEFAULT_SUCCESS_DELAY,
        checkpoint: CheckpointFn | None = None,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ):
        self.state = state or WizardState()
        self.success_delay = success_delay
        self.busy_timeout = busy_timeout
        self._checkpoint = checkpoint

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _move(self, target: WizardStep) -> None:
        if target not in self.TRANSITIONS[self.state.step]:
            raise InvalidTransitionError(self.state.step.value, target.value)
        self.state.step = target

    def _require_step(self, step: WizardStep, action: str) -> None:
        if self.state.step != step:
            raise InvalidTransitionError(self.state.step.value, action)

    def _require_idle(self, action: str) -> None:
        if self.state.is_uploading or self.state.is_submitting:
            raise WizardBusyError(action)

    def _mark_busy(self, *, uploading: bool = False, submitting: bool = False) -> None:
        self.state.is_uploading = uploading
        self.state.is_submitting = submitting
        self.state.busy_since = datetime.now(UTC)

    def mark_idle(self) -> None:
        """Clear the in-flight flags, e.g. after an interrupted operation."""
        self.state.is_uploading = False
        self.state.is_submitting = False
        self.state.busy_since = None

    async def _save_progress(self) -> None:
        if self._checkpoint is not None:
            await self._checkpoint(self.state)

    # ------------------------------------------------------------------
    # Form step
    # ------------------------------------------------------------------

    def update_form(self, case_name: str | None = None, area_of_law: str | None = None) -> None:
        self._require_step(WizardStep.FORM, "update_form")
        if case_name is not None:
            self.state.form.case_name = case_name
        if area_of_law is not None:
            self.state.form.area_of_law = area_of_law

    def reset_form(self) -> None:
        self._require_step(WizardStep.FORM, "reset_form")
        self.state.form = CaseForm()
        self.state.status = None

    def next(self) -> bool:
        """Validate the form and move to the upload step.

        Missing fields set a status message instead of raising.

        Returns:
            True if the wizard moved on, False if validation failed
        """
        self._require_step(WizardStep.FORM, "next")
        if not self.state.form.case_name.strip():
            self.state.status = "Please enter a case name."
            return False
        if not self.state.form.area_of_law.strip():
            self.state.status = "Please select an area of law."
            return False

        self.state.status = None
        self._move(WizardStep.UPLOAD)
        return True

    # ------------------------------------------------------------------
    # Upload step
    # ------------------------------------------------------------------

    def back(self) -> None:
        self._require_step(WizardStep.UPLOAD, "back")
        self._require_idle("go back")
        self._move(WizardStep.FORM)

    def stage(self, files: list[StagedFile]) -> None:
        """Append newly selected files; previously staged files are kept."""
        self._require_step(WizardStep.UPLOAD, "stage")
        self._require_idle("stage files")
        self.state.staged.extend(files)

    def remove_staged(self, index: int) -> StagedFile:
        """Remove one staged file and return it so its bytes can be released."""
        self._require_step(WizardStep.UPLOAD, "remove_staged")
        self._require_idle("remove files")
        if not 0 <= index < len(self.state.staged):
            raise EntryNotFoundError("staged", index)
        return self.state.staged.pop(index)

    def clear_staged(self) -> list[StagedFile]:
        self._require_step(WizardStep.UPLOAD, "clear_staged")
        self._require_idle("clear files")
        removed, self.state.staged = self.state.staged, []
        return removed

    async def upload_all(self, upload: UploadFn) -> list[UploadResult]:
        """Upload every staged file concurrently and wait for all to settle.

        One result per staged file, in staging order. A failed file gets an
        empty url; it never cancels the others. Moves to review once the
        batch settles, however many succeeded.
        """
        self._require_step(WizardStep.UPLOAD, "upload")
        self._require_idle("upload")

        if not self.state.staged:
            self.state.status = "No files selected to upload."
            return []

        self._mark_busy(uploading=True)
        self.state.status = "Uploading files..."
        await self._save_progress()

        try:
            results = await asyncio.gather(
                *(_attempt_upload(staged, upload) for staged in self.state.staged)
            )
        finally:
            self.mark_idle()

        self.state.uploaded = list(results)
        success_count = sum(1 for r in results if not r.failed)
        self.state.status = f"Uploaded {success_count} / {len(results)} file(s)"
        logger.info("upload_batch_settled", total=len(results), succeeded=success_count)

        self._move(WizardStep.REVIEW)
        return self.state.uploaded

    # ------------------------------------------------------------------
    # Review step
    # ------------------------------------------------------------------

    def edit(self) -> None:
        self._require_step(WizardStep.REVIEW, "edit")
        self._require_idle("edit")
        self._move(WizardStep.UPLOAD)

    def remove_uploaded(self, index: int) -> UploadResult:
        self._require_step(WizardStep.REVIEW, "remove_uploaded")
        self._require_idle("remove files")
        if not 0 <= index < len(self.state.uploaded):
            raise EntryNotFoundError("uploaded", index)
        return self.state.uploaded.pop(index)

    async def retry(self, index: int, upload: UploadFn) -> UploadResult | None:
        """Re-upload one failed entry, replacing it in place.

        Returns:
            The new result, or None when there was nothing to retry
        """
        self._require_step(WizardStep.REVIEW, "retry")
        self._require_idle("retry")
        if not 0 <= index < len(self.state.uploaded):
            raise EntryNotFoundError("uploaded", index)

        current = self.state.uploaded[index]
        if not current.failed:
            self.state.status = f"{current.file_name} is already uploaded."
            return None

        staged = next((s for s in self.state.staged if s.id == current.staged_id), None)
        if staged is None:
            self.state.status = "Cannot retry: the original file is no longer staged."
            return None

        self._mark_busy(uploading=True)
        self.state.status = f"Retrying upload for {staged.file_name}..."
        await self._save_progress()

        try:
            result = await _attempt_upload(staged, upload)
        finally:
            self.mark_idle()

        self.state.uploaded[index] = result
        self.state.status = "Retry failed" if result.failed else "Retry complete"
        return result

    async def submit(self, create: CreateFn, now: datetime | None = None) -> UUID | None:
        """Create the timeline from the form and every reviewed entry.

        On success clears the draft and schedules the return to the form step
        after ``success_delay`` seconds. On failure the state is left as is so
        the same submit can be retried.

        Returns:
            The new timeline id, or None if nothing was created
        """
        self._require_step(WizardStep.REVIEW, "submit")
        self._require_idle("submit")

        if not self.state.form.is_complete:
            self.state.status = "Please ensure case name and area of law are provided."
            return None
        if not self.state.can_submit:
            self.state.status = "Add at least one file before creating the timeline."
            return None

        files = [
            FileIn(file_name=r.file_name, url=r.url, size=r.size)
            for r in self.state.uploaded
        ]

        self._mark_busy(submitting=True)
        self.state.status = "Submitting timeline..."
        await self._save_progress()

        try:
            timeline_id = await create(self.state.form.model_copy(), files)
        except Exception as exc:
            logger.warning("timeline_submit_failed", error=str(exc), error_type=type(exc).__name__)
            self.state.status = "Failed to create timeline. Please try again."
            return None
        finally:
            self.mark_idle()

        now = now or datetime.now(UTC)
        self.state.status = "Timeline created successfully!"
        self.state.form = CaseForm()
        self.state.staged = []
        self.state.uploaded = []
        self.state.reset_at = now + timedelta(seconds=self.success_delay)
        return timeline_id

    def settle(self, now: datetime | None = None) -> bool:
        """Apply time-based changes: release a stale busy flag and apply a
        pending post-success return to the form step.

        Returns:
            True if the state changed
        """
        now = now or datetime.now(UTC)
        changed = self._release_stale_busy(now)
        if self.state.reset_at is None or now < self.state.reset_at:
            return changed

        self.state.reset_at = None
        self.state.status = None
        if self.state.step != WizardStep.FORM:
            self._move(WizardStep.FORM)
        return True

    def _release_stale_busy(self, now: datetime) -> bool:
        busy_since = self.state.busy_since
        if busy_since is None or now - busy_since < timedelta(seconds=self.busy_timeout):
            return False

        logger.warning("stale_busy_released", busy_since=busy_since.isoformat())
        self.mark_idle()
        self.state.status = "The previous operation was interrupted. Please try again."
        return True


async def _attempt_upload(staged: StagedFile, upload: UploadFn) -> UploadResult:
    """Upload one file, folding any failure into an empty url."""
    try:
        url = await upload(staged)
    except Exception as exc:
        logger.warning("file_upload_failed", file_name=staged.file_name, error=str(exc))
        url = ""

    return UploadResult(
        file_name=staged.file_name,
        url=url or "",
        size=staged.size,
        mime=staged.mime,
        staged_id=staged.id,
    )
