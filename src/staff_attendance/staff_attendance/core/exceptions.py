from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class RemoteStoreError(DomainError):
    """Raised by the list client for a non-2xx response from the remote store."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.method = method
        self.url = url
        self.detail = detail


class AuthRequiredError(RemoteStoreError):
    """Raised when the token provider has no bearer token to offer."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status=401, status_text="Unauthorized")


class RemoteStoreNotConfiguredError(DomainError):
    """Raised when the remote adapter has no client and no way to build one."""


class RequestAbortedError(DomainError):
    """Raised when a listing is aborted by the caller before it completes."""
