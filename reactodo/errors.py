# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Error taxonomy and typed result values.

Components return these results for expected conditions (not found,
validation failure, ownership mismatch). Exceptions are reserved for
adapter failures and are translated at the component boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Classification of failures surfaced by services."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_FAILED = "validation_failed"
    CONFLICT = "conflict"
    EXTERNAL_SERVICE_FAILURE = "external_service_failure"
    INTERNAL = "internal"


# HTTP status for each error kind, used by the UI-facing endpoints.
ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.EXTERNAL_SERVICE_FAILURE: 502,
    ErrorKind.INTERNAL: 500,
}


@dataclass
class ValidationResult:
    """Outcome of a validation pass; lists every violated rule."""
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ServiceResult:
    """
    Result of a service operation.

    Attributes:
        success: Whether the operation completed
        data: Payload on success
        error: Human readable error message on failure
        kind: Error classification on failure
        errors: Full list of violated rules for validation failures
        status_code: HTTP-equivalent status for the outcome
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    errors: List[str] = field(default_factory=list)
    status_code: int = 200

    @classmethod
    def ok(cls, data: Any = None, status_code: int = 200) -> "ServiceResult":
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        error: str,
        errors: Optional[List[str]] = None,
        data: Any = None
    ) -> "ServiceResult":
        return cls(
            success=False,
            data=data,
            error=error,
            kind=kind,
            errors=list(errors or []),
            status_code=ERROR_STATUS_CODES[kind],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for a JSON response body."""
        if self.success:
            return {'success': True, 'data': self.data}
        body: Dict[str, Any] = {
            'success': False,
            'error': self.error,
            'kind': self.kind.value if self.kind else None,
        }
        if self.errors:
            body['errors'] = self.errors
        if self.data is not None:
            body['data'] = self.data
        return body


class StorageError(Exception):
    """Raised by stores when a read or write cannot be completed."""

    def __init__(self, message: str, operation: str = "", original_error: Optional[Exception] = None):
        self.message = message
        self.operation = operation
        self.original_error = original_error
        super().__init__(message)
