from typing import Dict, Optional

from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Bad input. Carries every failing field, not only the first."""

    def __init__(self, errors: Dict[str, str], message: str = "Invalid data") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
        self.errors = dict(errors)


class InvalidTarget(ServiceError):
    def __init__(self, message: str = "Fan-out target cannot be resolved") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class EmptyRoster(ServiceError):
    def __init__(self, message: str = "Roster is empty; nobody to assign the task to") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class DuplicateDelivery(ServiceError):
    def __init__(self, message: str = "Delivery already exists for this task and recipient") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class NotFound(ServiceError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class Forbidden(ServiceError):
    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class InvalidTransition(ServiceError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move from {current} to {requested}", status.HTTP_409_CONFLICT)
        self.current = current
        self.requested = requested


class StoreTimeout(ServiceError):
    """Raised by the persistence adapter; retry policy belongs to the caller."""

    def __init__(self, message: str = "Store call timed out", operation: Optional[str] = None) -> None:
        super().__init__(message, status.HTTP_504_GATEWAY_TIMEOUT)
        self.operation = operation


class StoreUnavailable(ServiceError):
    def __init__(self, message: str = "Store unavailable", operation: Optional[str] = None) -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.operation = operation


NOT_ACCESSIBLE_MESSAGE = "Not accessible"


def to_http_exception(error: ServiceError, conceal_forbidden: bool = False) -> HTTPException:
    """Translate a service error for the HTTP layer.

    With ``conceal_forbidden`` a Forbidden and a NotFound look identical, so a
    caller cannot learn whether a resource they may not touch exists.
    """
    if conceal_forbidden and isinstance(error, (Forbidden, NotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_ACCESSIBLE_MESSAGE)
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=error.status_code,
            detail={"error": error.message, "details": error.errors},
        )
    return HTTPException(status_code=error.status_code, detail=error.message)
