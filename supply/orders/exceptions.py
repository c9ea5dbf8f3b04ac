"""
Custom exceptions for the order lifecycle.

Every exception carries a stable ``code`` that callers branch on, plus a
``retryable`` hint: conflicts and storage failures can be retried after
re-fetching the order, everything else needs corrected input or a different
actor.
"""

from typing import Dict, Any


class BusinessException(Exception):
    """Base exception for business logic errors."""

    http_status = 400
    retryable = False

    def __init__(self, message: str, code: str = "BUSINESS_ERROR", details: Dict[str, Any] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationException(BusinessException):
    """Raised when data validation fails."""

    def __init__(self, message: str, field_errors: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", field_errors or {})


class InvalidStateException(BusinessException):
    """Raised when an operation is attempted from a status that does not permit it."""

    http_status = 409

    def __init__(self, message: str, current_status: str = None, required_status: str = None):
        details = {}
        if current_status is not None:
            details["current_status"] = current_status
        if required_status is not None:
            details["required_status"] = required_status
        super().__init__(message, "INVALID_STATE", details)


class InvalidTransitionException(BusinessException):
    """Raised when attempting an invalid workflow transition."""

    http_status = 409

    def __init__(self, current_status: str, attempted_status: str, entity_type: str = "order"):
        message = f"Invalid transition for {entity_type}: cannot move from {current_status} to {attempted_status}"
        super().__init__(message, "INVALID_TRANSITION", {
            "current_status": current_status,
            "attempted_status": attempted_status,
            "entity_type": entity_type
        })


class AuthorizationException(BusinessException):
    """Raised when the acting user's role cannot perform an action."""

    http_status = 403

    def __init__(self, message: str, role: str = None, required_role: str = None):
        super().__init__(message, "AUTHORIZATION_ERROR", {
            "role": role,
            "required_role": required_role,
        })


class NotFoundException(BusinessException):
    """Raised for unknown order or item ids."""

    http_status = 404

    def __init__(self, entity_type: str, identifier: Any):
        message = f"{entity_type} {identifier} not found"
        super().__init__(message, "NOT_FOUND", {
            "entity_type": entity_type,
            "id": str(identifier),
        })


class ConflictException(BusinessException):
    """Raised when a concurrent modification is detected."""

    http_status = 409
    retryable = True

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "CONFLICT", details)


class StorageUnavailableException(BusinessException):
    """Raised when the database cannot complete the request."""

    http_status = 503
    retryable = True

    def __init__(self, message: str = "Storage is unavailable, retry the request"):
        super().__init__(message, "STORAGE_UNAVAILABLE")
