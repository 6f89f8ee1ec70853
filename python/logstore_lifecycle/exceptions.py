"""
Exception hierarchy for the log store lifecycle manager.

- LogStoreError: Base exception for all lifecycle-manager errors
- ConfigError: Malformed or missing credential/certificate material
- ResourceNotReadyError: A prerequisite secret is not available yet
- ConnectivityError: Client construction failed after all bootstrap attempts
- RemoteAPIError: Any non-NotFound failure returned by the store
- NotFoundError: The requested remote object does not exist

Each exception includes:
- error_code: Machine-readable error identifier
- context: Additional structured data for debugging
- is_retryable: Whether the caller may retry on its next reconciliation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes for categorization and monitoring."""

    # Configuration errors (1xxx)
    CONFIG_INVALID = "LOGSTORE_1001"
    CONFIG_MISSING = "LOGSTORE_1002"
    CONFIG_VALIDATION = "LOGSTORE_1003"
    CONFIG_CREDENTIALS = "LOGSTORE_1004"
    CONFIG_CERTIFICATE = "LOGSTORE_1005"

    # Prerequisite errors (2xxx)
    RESOURCE_NOT_READY = "LOGSTORE_2001"

    # Connectivity errors (5xxx)
    CONN_CLIENT_FAILED = "LOGSTORE_5001"
    CONN_TIMEOUT = "LOGSTORE_5002"

    # Remote API errors (6xxx)
    REMOTE_REQUEST_FAILED = "LOGSTORE_6001"
    REMOTE_NOT_FOUND = "LOGSTORE_6004"
    REMOTE_INVALID_RESPONSE = "LOGSTORE_6005"

    # General errors (9xxx)
    UNKNOWN = "LOGSTORE_9999"


@dataclass
class LogStoreError(Exception):
    """
    Base exception for all lifecycle-manager errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        context: Additional structured data for debugging
        is_retryable: Whether the operation can be retried on a later pass
        cause: Original exception that caused this error
    """

    message: str
    error_code: ErrorCode = ErrorCode.UNKNOWN
    context: dict[str, Any] = field(default_factory=dict)
    is_retryable: bool = False
    cause: Exception | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f" ({context_str})")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"context={self.context!r}, "
            f"is_retryable={self.is_retryable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "context": self.context,
            "is_retryable": self.is_retryable,
            "cause": str(self.cause) if self.cause else None,
        }


@dataclass
class ConfigError(LogStoreError):
    """Raised when credential, certificate or configuration material is invalid."""

    error_code: ErrorCode = ErrorCode.CONFIG_INVALID

    @classmethod
    def validation_failed(cls, field: str, value: Any, reason: str) -> ConfigError:
        """Create error for validation failure."""
        return cls(
            message=f"Configuration validation failed for '{field}': {reason}",
            error_code=ErrorCode.CONFIG_VALIDATION,
            context={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def invalid_credentials(
        cls, secret: str, reason: str, cause: Exception | None = None
    ) -> ConfigError:
        """Create error for a malformed credentials secret."""
        return cls(
            message=f"Invalid credentials in secret '{secret}': {reason}",
            error_code=ErrorCode.CONFIG_CREDENTIALS,
            context={"secret": secret, "reason": reason},
            cause=cause,
        )

    @classmethod
    def invalid_certificate(
        cls, source: str, reason: str, cause: Exception | None = None
    ) -> ConfigError:
        """Create error for missing or unparsable certificate material."""
        return cls(
            message=f"Invalid certificate material in '{source}': {reason}",
            error_code=ErrorCode.CONFIG_CERTIFICATE,
            context={"source": source, "reason": reason},
            cause=cause,
        )


@dataclass
class ResourceNotReadyError(LogStoreError):
    """Raised when a prerequisite secret has not been provisioned yet."""

    error_code: ErrorCode = ErrorCode.RESOURCE_NOT_READY
    is_retryable: bool = True

    @classmethod
    def secret_missing(cls, name: str) -> ResourceNotReadyError:
        """Create error for a secret that does not exist yet."""
        return cls(
            message=f"Waiting for secret '{name}' to become available",
            context={"secret": name},
        )


@dataclass
class ConnectivityError(LogStoreError):
    """Raised when the store client could not be constructed."""

    error_code: ErrorCode = ErrorCode.CONN_CLIENT_FAILED
    is_retryable: bool = True

    @classmethod
    def attempts_exhausted(
        cls, endpoint: str, attempts: int, cause: Exception | None
    ) -> ConnectivityError:
        """Create error for a bootstrap loop that never produced a client."""
        return cls(
            message=f"Failed to create client for {endpoint} after {attempts} attempts",
            context={"endpoint": endpoint, "attempts": attempts},
            cause=cause,
        )


@dataclass
class RemoteAPIError(LogStoreError):
    """Raised when a remote call fails for any reason other than NotFound."""

    error_code: ErrorCode = ErrorCode.REMOTE_REQUEST_FAILED
    is_retryable: bool = True

    @property
    def status(self) -> int | None:
        """HTTP status code of the failed call, if one was received."""
        status = self.context.get("status")
        return int(status) if status is not None else None

    @classmethod
    def request_failed(
        cls,
        method: str,
        path: str,
        reason: str,
        status: int | None = None,
        cause: Exception | None = None,
    ) -> RemoteAPIError:
        """Create error for a failed HTTP exchange."""
        return cls(
            message=f"{method} {path} failed: {reason}",
            context={"method": method, "path": path, "status": status, "reason": reason},
            cause=cause,
        )

    @classmethod
    def invalid_response(cls, path: str, reason: str) -> RemoteAPIError:
        """Create error for a response body that could not be decoded."""
        return cls(
            message=f"Invalid response from {path}: {reason}",
            error_code=ErrorCode.REMOTE_INVALID_RESPONSE,
            context={"path": path, "reason": reason},
            is_retryable=False,
        )


@dataclass
class NotFoundError(LogStoreError):
    """Raised when the requested remote object does not exist."""

    error_code: ErrorCode = ErrorCode.REMOTE_NOT_FOUND

    @classmethod
    def resource(cls, path: str) -> NotFoundError:
        """Create error for a 404 response."""
        return cls(
            message=f"Resource not found: {path}",
            context={"path": path},
        )
