"""
Domain errors raised by the service layer.

Services never raise HTTPException themselves; the API layer maps every
DomainError onto a JSON response with its status code and a stable code.
"""

from typing import Any, Optional

from fastapi import status


class DomainError(Exception):
    """Base class for all business errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.code = self.__class__.__name__
        self.details = details
        super().__init__(self.message)

    def public_message(self) -> str:
        return self.message


class ValidationError(DomainError):
    """Malformed or missing input, correctable by the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class InvalidStateError(DomainError):
    """Operation not legal in the entity's current lifecycle state."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation not allowed in the current state"


class ExpiredError(DomainError):
    status_code = status.HTTP_410_GONE
    default_message = "The reservation has expired"


class InvalidCodeError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid confirmation code"


class ConflictError(DomainError):
    """Uniqueness or precondition violation."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict with existing data"


class InternalError(DomainError):
    """Store or processor failure. The message is never shown to clients."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def public_message(self) -> str:
        return "Internal server error"
