"""
Error types for the Varadhi control plane.

This module defines the domain error taxonomy surfaced by the metadata
store and the owning services:
- ResourceNotFoundError: requested resource is absent
- DuplicateResourceError: create on an existing resource
- InvalidOperationError: version conflict or structural constraint violation
- MetaStoreError: any other store/transport failure (infrastructure)

It also provides Result, a value wrapper used by read-modify-write loops
that need to branch on the error kind instead of nesting try blocks.

Invariants:
    - All errors inherit from VaradhiError
    - Every domain error carries exactly one ErrorKind
    - Nothing in this module retries; the caller decides retry vs. surface
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Kinds of failure a metadata operation can report."""

    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    INVALID_OPERATION = "invalid_operation"
    META_STORE = "meta_store"
    INVALID_RESOURCE = "invalid_resource"


class VaradhiError(Exception):
    """Base exception for all control plane errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "VARADHI_ERROR"
        self.details = details or {}


class ResourceNotFoundError(VaradhiError):
    """Requested resource does not exist.

    Raised when:
    - get/update/delete target a missing path
    - A referenced parent (org, team, project) is missing
    - Children are listed under a missing path
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="NOT_FOUND", details=details)


class DuplicateResourceError(VaradhiError):
    """Resource already exists at the target path."""

    kind = ErrorKind.DUPLICATE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="DUPLICATE_RESOURCE", details=details)


class InvalidOperationError(VaradhiError):
    """Operation is not valid for the current state of the resource.

    Raised when:
    - An update presents a stale version (conflicting update)
    - A resource with live children is deleted
    """

    kind = ErrorKind.INVALID_OPERATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="INVALID_OPERATION", details=details)


class MetaStoreError(VaradhiError):
    """Opaque infrastructure failure of the metadata store.

    Treated as retryable by the caller; never a domain decision.
    """

    kind = ErrorKind.META_STORE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="META_STORE_ERROR", details=details)


class InvalidResourceError(VaradhiError):
    """Entity failed validation (naming constraints, bad references)."""

    kind = ErrorKind.INVALID_RESOURCE

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_RESOURCE", details={"field": field_name})
        self.field_name = field_name


class AuthorizationConfigError(VaradhiError):
    """Role or binding configuration could not be parsed.

    Fatal at startup; never raised per request.
    """

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message, code="AUTHZ_CONFIG_ERROR", details={"source": source})
        self.source = source


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a metadata operation: a value or a domain error.

    Example:
        >>> result = await Result.capture(meta_store.get_org("public"))
        >>> if result.kind is ErrorKind.NOT_FOUND:
        ...     ...
        >>> org = result.unwrap()
    """

    value: Optional[T] = None
    error: Optional[VaradhiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, re-raising the captured error if any."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    async def capture(cls, operation: Awaitable[T]) -> Result[T]:
        """Await an operation, capturing domain errors into the result.

        Exceptions that are not VaradhiError propagate unchanged.
        """
        try:
            return cls(value=await operation)
        except VaradhiError as e:
            return cls(error=e)
