"""Pydantic schemas for upload wizard drafts."""

from pydantic import Field

from app.schemas.timeline import CamelModel
from app.wizard.models import CaseForm, WizardState, WizardStep


class FormUpdate(CamelModel):
    case_name: str | None = None
    area_of_law: str | None = None


class StagedFileOut(CamelModel):
    id: str
    file_name: str
    size: int
    size_label: str
    mime: str | None = None
    preview_url: str | None = None


class UploadResultOut(CamelModel):
    file_name: str
    url: str
    size: int
    size_label: str
    mime: str | None = None
    failed: bool
    can_retry: bool


class DraftResponse(CamelModel):
    """Full wizard draft as seen by a client.

    staged and uploaded default to empty arrays, never null.
    """

    id: str
    step: WizardStep
    form: CaseForm
    staged: list[StagedFileOut] = Field(default_factory=list)
    uploaded: list[UploadResultOut] = Field(default_factory=list)
    status: str | None = None
    notice: str | None = None
    can_submit: bool = False
    is_uploading: bool = False
    is_submitting: bool = False

    @classmethod
    def from_state(cls, draft_id: str, state: WizardState, preview_base: str = "") -> "DraftResponse":
        return cls(
            id=draft_id,
            step=state.step,
            form=state.form,
            staged=[
                StagedFileOut(
                    id=s.id,
                    file_name=s.file_name,
                    size=s.size,
                    size_label=s.size_label,
                    mime=s.mime,
                    preview_url=f"{preview_base}/{s.id}/preview" if s.has_preview else None,
                )
                for s in state.staged
            ],
            uploaded=[
                UploadResultOut(
                    file_name=r.file_name,
                    url=r.url,
                    size=r.size,
                    size_label=r.size_label,
                    mime=r.mime,
                    failed=r.failed,
                    can_retry=r.failed,
                )
                for r in state.uploaded
            ],
            status=state.status,
            notice=state.notice if state.step == WizardStep.REVIEW else None,
            can_submit=state.can_submit,
            is_uploading=state.is_uploading,
            is_submitting=state.is_submitting,
        )


class SubmitResponse(CamelModel):
    draft: DraftResponse
    timeline_id: str | None = None
