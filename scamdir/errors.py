class TriageError(Exception):
    message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(TriageError):
    message = "Invalid input."


class MissingField(ValidationError):
    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"{field.replace('_', ' ').capitalize()} is required.")


class MissingPhone(MissingField):
    def __init__(self, message: str | None = None):
        super().__init__("phone", message or "Phone number is missing.")


class NoBusinessSelected(ValidationError):
    message = "Select a business before converting."


class InvalidRating(ValidationError):
    message = "Rating must be between 1 and 5."


class AlreadyConverted(ValidationError):
    message = "This report has already been converted to a review."


class InvalidTransition(ValidationError):
    def __init__(self, kind: str, current, target):
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {kind} from {_label(current)} to {_label(target)}.")


class StoreError(TriageError):
    message = "Could not save changes. Please try again."


class NotFoundError(StoreError):
    message = "The record no longer exists. Reload and try again."


class UpsertFailed(StoreError):
    message = "Failed to flag number. Please try again."


class ReviewInsertFailed(StoreError):
    message = "Failed to create review from this report."


class ReportUpdateFailed(StoreError):
    def __init__(self, message: str | None = None, orphaned: bool = False):
        self.orphaned = orphaned
        super().__init__(message or "Failed to update report status.")


class BulkUpdateFailed(StoreError):
    message = "Could not update selected reports. Changes reverted."


def _label(status) -> str:
    if status is None:
        return "no status"
    return getattr(status, "value", status)
