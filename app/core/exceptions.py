class CaseTimelineError(Exception):
    """Base exception for the case timelines application."""

    pass


class StorageError(CaseTimelineError):
    """Raised when object storage operations fail."""

    pass


class StorageNotConfiguredError(StorageError):
    """Raised when no bucket is configured or the client was never connected."""

    pass


class StorageUploadError(StorageError):
    """Raised when a single file could not be stored."""

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Upload failed for '{file_name}': {reason}")


class WizardError(CaseTimelineError):
    """Base for upload wizard errors."""

    pass


class DraftNotFoundError(WizardError):
    """Raised when a wizard draft does not exist or has expired."""

    def __init__(self, draft_id: str):
        self.draft_id = draft_id
        super().__init__(f"Draft '{draft_id}' not found")


class InvalidTransitionError(WizardError):
    """Raised when a wizard action is not allowed from the current step."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"'{target}' is not allowed from step '{current}'")


class WizardBusyError(WizardError):
    """Raised when a draft is changed while an upload or submission is in flight."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Cannot {action} while an upload or submission is in progress")


class EntryNotFoundError(WizardError):
    """Raised when a staged or uploaded entry index does not exist."""

    def __init__(self, kind: str, index: int | str):
        self.kind = kind
        self.index = index
        super().__init__(f"No {kind} entry at {index!r}")
