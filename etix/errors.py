"""
Registry Error Taxonomy

Every failed registry operation raises one of the exceptions below, at the
point of the failing precondition and before any state is modified.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable error kinds"""
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    INACTIVE_RESOURCE = "inactive_resource"
    CAPACITY_EXCEEDED = "capacity_exceeded"


class RegistryError(Exception):
    """Base class for registry failures"""
    error_code: ErrorCode = ErrorCode.INVALID_ARGUMENT

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.error_code.value}


class Unauthorized(RegistryError):
    """Caller lacks the required role or relationship"""
    error_code = ErrorCode.UNAUTHORIZED


class NotFound(RegistryError):
    """Referenced event or ticket does not exist"""
    error_code = ErrorCode.NOT_FOUND


class InvalidArgument(RegistryError):
    """Malformed input"""
    error_code = ErrorCode.INVALID_ARGUMENT


class InactiveResource(RegistryError):
    """Operation requires an active event"""
    error_code = ErrorCode.INACTIVE_RESOURCE


class CapacityExceeded(RegistryError):
    """Event supply limit reached"""
    error_code = ErrorCode.CAPACITY_EXCEEDED
