"""Error taxonomy shared by services, adapters and the HTTP layer."""


class SnapNowError(Exception):
    """Base class for engine errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SnapNowError):
    """Input was malformed or incomplete; nothing was applied."""

    status_code = 422


class NotFoundError(SnapNowError):
    """The referenced record does not exist."""

    status_code = 404


class ConflictError(SnapNowError):
    """The record changed under the caller or the transition is not allowed now."""

    status_code = 409


class PermissionDeniedError(SnapNowError):
    """The caller's role or identity may not perform the action."""

    status_code = 403


class TransientNetworkError(SnapNowError):
    """Background sync call failed; retried on the next tick."""

    status_code = 503


class ExternalCollaboratorError(SnapNowError):
    """Payment or storage collaborator failed; the transition was blocked."""

    status_code = 502
