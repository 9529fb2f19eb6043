"""Exception hierarchy for the sync core.

Nothing raised here is fatal to the process: every error is recoverable at the
level of "the user retries the action".
"""

from typing import Any, Dict, Optional


class SilverQuillError(Exception):
    """Base exception for all sync core errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code (e.g., "STORE_001").
        details: Additional context as a dictionary.
        recoverable: Whether the user can recover by retrying.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "SQ_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class RemoteStoreError(SilverQuillError):
    """Raised when a RemoteStore call rejects, times out or returns an error status."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            code=kwargs.pop("code", "STORE_001"),
            details=details,
            **kwargs,
        )
        self.table = table
        self.operation = operation
        self.status_code = status_code


class CoverUploadError(RemoteStoreError):
    """Raised when the object-store put for a cover image fails."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        super().__init__(
            message,
            operation="upload",
            code="STORE_002",
            details=details,
            **kwargs,
        )


class IdentityRequiredError(SilverQuillError):
    """Raised when a mutation is attempted with no resolvable identity."""

    def __init__(self, message: str = "No active identity", operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, code="AUTH_001", details=details)


class EntityNotFoundError(SilverQuillError, ValueError):
    """Raised when an operation targets an entity missing from the local graph."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} with id {entity_id} not found",
            code="GRAPH_001",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class InvariantViolation(SilverQuillError):
    """Raised when the local graph is asked to hold a relationally invalid state."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message=message, code="GRAPH_002", details=details)


class CacheStoreError(SilverQuillError):
    """Raised when a response cannot be written to the asset cache.

    Always absorbed by the caching proxy; the caller already has its response.
    """

    def __init__(self, message: str, key: Optional[str] = None, generation: Optional[str] = None):
        details = {}
        if key:
            details["key"] = key
        if generation:
            details["generation"] = generation
        super().__init__(message=message, code="CACHE_001", details=details)
