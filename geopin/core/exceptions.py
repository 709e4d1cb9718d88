# geopin/core/exceptions.py
"""
Domain-specific exceptions for geopin.

These exceptions carry business-focused messages that the API layer turns
into HTTP responses. The geocoding client itself never raises them; it
reports failures as result values.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

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
    """Raised when request validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class ServiceUnavailableException(ServiceException):
    """Raised when the geocoding provider is not configured."""

    def __init__(self, message: str = "Geocoding service not available") -> None:
        super().__init__(message, code="GEOCODING_UNAVAILABLE")


class InvalidPinTransition(BusinessRuleException):
    """Raised when a pin session event is not valid in its current state."""

    def __init__(self, event: str, state: str) -> None:
        super().__init__(
            f"Cannot {event} a pin while it is {state}",
            code="INVALID_PIN_TRANSITION",
            details={"event": event, "state": state},
        )
