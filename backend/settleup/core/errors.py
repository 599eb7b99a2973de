"""Domain errors raised by the service layer.

Each error carries the HTTP status the API answers with; ``settleup.main``
turns them into ``{"success": false, "message": ...}`` bodies.
"""

from fastapi import status


class SettleUpError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SettleUpError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(SettleUpError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(SettleUpError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(SettleUpError):
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateError(SettleUpError):
    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(SettleUpError):
    status_code = status.HTTP_409_CONFLICT


class ConflictError(SettleUpError):
    """A concurrent writer kept winning after every retry."""

    status_code = status.HTTP_409_CONFLICT


class ProviderError(SettleUpError):
    """An external collaborator (payment or identity provider) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
