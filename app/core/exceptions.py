"""
Domain errors raised by the booking, subscription and payment services.

Each error carries a stable ``code`` and the HTTP status the API layer
answers with, so controllers never have to guess what went wrong.
"""

from fastapi import status


class DomainError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class SlotFullError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "SLOT_FULL"


class AlreadyActiveError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_ACTIVE"


class InvalidTransitionError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_TRANSITION"


class ConflictError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "CONFLICT"


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
