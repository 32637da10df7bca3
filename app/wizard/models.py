"""Upload wizard state models.

WizardState is the whole draft: it round-trips through Redis as JSON and is
returned to API clients as-is (camelCase on the wire).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.domain.files import format_file_size


class WizardStep(str, Enum):
    """Wizard steps."""

    FORM = "form"
    UPLOAD = "upload"
    REVIEW = "review"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CaseForm(_CamelModel):
    case_name: str = ""
    area_of_law: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.case_name.strip()) and bool(self.area_of_law.strip())


class StagedFile(_CamelModel):
    """A file selected locally but not uploaded yet.

    The bytes live in the draft store under ``id``; ``has_preview`` marks
    images whose bytes may be served back as a preview.
    """

    id: str
    file_name: str
    size: int
    mime: str | None = None
    has_preview: bool = False

    @property
    def size_label(self) -> str:
        return format_file_size(self.size)


class UploadResult(_CamelModel):
    """Outcome of one staged file's upload attempt. Empty url means failed."""

    file_name: str
    url: str = ""
    size: int
    mime: str | None = None
    staged_id: str | None = None

    @property
    def failed(self) -> bool:
        return not self.url

    @property
    def size_label(self) -> str:
        return format_file_size(self.size)


class WizardState(_CamelModel):
    step: WizardStep = WizardStep.FORM
    form: CaseForm = Field(default_factory=CaseForm)
    staged: list[StagedFile] = Field(default_factory=list)
    uploaded: list[UploadResult] = Field(default_factory=list)
    status: str | None = None
    is_uploading: bool = False
    is_submitting: bool = False
    # Set after a successful submit; the wizard returns to FORM once it passes
    reset_at: datetime | None = None
    # When the in-flight upload or submission started; None while idle
    busy_since: datetime | None = None

    @property
    def any_failed(self) -> bool:
        return any(r.failed for r in self.uploaded)

    @property
    def all_succeeded(self) -> bool:
        return bool(self.uploaded) and not self.any_failed

    @property
    def can_submit(self) -> bool:
        return bool(self.uploaded) and not self.is_submitting

    @property
    def notice(self) -> str | None:
        if self.any_failed:
            return "Some files failed to upload. Use Retry or Remove."
        if self.all_succeeded:
            return "All files uploaded successfully, ready to submit."
        return None
