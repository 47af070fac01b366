# backend/barberbook/core/exceptions.py
"""
Domain exceptions.

Services raise these; routes turn them into HTTP errors with
``handle_domain_exception``. Every rejection carries a message, a stable
code and a details mapping.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base of every rejection a service can raise."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input is malformed or out of range (past date, unknown service)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Unknown barbershop, barber, service, booking or waitlist entry."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """The request collides with existing state."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """A well-formed request the current state does not allow."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when the actor does not own the target booking or entry."""

    status_code = status.HTTP_403_FORBIDDEN


class PaymentException(DomainException):
    """Raised when the payment gateway fails to charge or refund."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class ServiceException(DomainException):
    """Unexpected database failure inside a service transaction."""


class BookingConflictException(ConflictException):
    """Raised when the requested interval is no longer free."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class BookingLockTimeout(BookingConflictException):
    """Raised when the exclusive booking section could not be entered in time."""

    def __init__(self, keys: list[str]):
        super().__init__(
            message="This time slot is being booked by someone else, please try again",
            details={"lock_keys": keys},
        )


class RepositoryException(Exception):
    """Data access failure; raised by repositories, never by services."""
