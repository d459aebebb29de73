"""Error taxonomy for the inventory, pricing and booking core.

Services raise these; the HTTP layer maps them to status codes in
``pms.main`` and never catches them in routers.
"""


class PMSError(Exception):
    """Base class for every error the core surfaces to callers."""

    code = "error"
    status_code = 500

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "errors": self.errors,
        }


class ValidationError(PMSError):
    """Malformed or semantically invalid input. Never retried."""

    code = "validation_error"
    status_code = 422

    def __init__(self, errors: list[str] | str, message: str = "Validation failed"):
        if isinstance(errors, str):
            errors = [errors]
        super().__init__(message, errors)


class NotFoundError(PMSError):
    code = "not_found"
    status_code = 404


class ConflictError(PMSError):
    """The requested inventory is no longer available, or the state forbids the action."""

    code = "conflict"
    status_code = 409


class BookingCommitFailed(PMSError):
    """The booking transaction failed and was rolled back."""

    code = "booking_commit_failed"
    status_code = 500
