"""
Tests for the lifecycle manager exception hierarchy.

Verifies:
- Exception creation and message formatting
- Error code assignment
- Factory method behavior
- Retry classification
- Serialization to dict for logging
"""

import pytest

from logstore_lifecycle.exceptions import (
    ConfigError,
    ConnectivityError,
    ErrorCode,
    LogStoreError,
    NotFoundError,
    RemoteAPIError,
    ResourceNotReadyError,
)


class TestErrorCode:
    """Tests for ErrorCode enum."""

    def test_error_codes_are_strings(self) -> None:
        """Error codes should be string values."""
        assert isinstance(ErrorCode.CONFIG_INVALID.value, str)
        assert ErrorCode.CONFIG_INVALID.value == "LOGSTORE_1001"

    def test_error_code_ranges(self) -> None:
        """Error codes should follow the defined ranges."""
        assert ErrorCode.CONFIG_CREDENTIALS.value.startswith("LOGSTORE_1")
        assert ErrorCode.RESOURCE_NOT_READY.value.startswith("LOGSTORE_2")
        assert ErrorCode.CONN_CLIENT_FAILED.value.startswith("LOGSTORE_5")
        assert ErrorCode.REMOTE_NOT_FOUND.value.startswith("LOGSTORE_6")


class TestLogStoreError:
    """Tests for the base LogStoreError class."""

    def test_basic_creation(self) -> None:
        """Basic error creation with message."""
        error = LogStoreError(message="Something went wrong")
        assert error.message == "Something went wrong"
        assert error.error_code == ErrorCode.UNKNOWN
        assert error.is_retryable is False
        assert error.cause is None

    def test_str_includes_code_and_context(self) -> None:
        """String form carries the code and context."""
        error = LogStoreError(
            message="Failed",
            error_code=ErrorCode.CONFIG_INVALID,
            context={"secret": "creds"},
        )
        assert str(error) == "[LOGSTORE_1001] Failed (secret=creds)"

    def test_repr(self) -> None:
        """Repr names the concrete class."""
        assert repr(ConfigError(message="x")).startswith("ConfigError(")

    def test_to_dict(self) -> None:
        """Serialization for structured logging."""
        cause = ValueError("bad pem")
        error = ConfigError.invalid_certificate("ca", "unparsable", cause=cause)

        data = error.to_dict()

        assert data["error_type"] == "ConfigError"
        assert data["error_code"] == "LOGSTORE_1005"
        assert data["context"] == {"source": "ca", "reason": "unparsable"}
        assert data["is_retryable"] is False
        assert data["cause"] == "bad pem"

    def test_can_be_raised(self) -> None:
        """Errors are ordinary exceptions."""
        with pytest.raises(LogStoreError, match="boom"):
            raise RemoteAPIError(message="boom")


class TestConfigError:
    """Tests for ConfigError factories."""

    def test_validation_failed(self) -> None:
        error = ConfigError.validation_failed("max_attempts", 0, "must be at least 1")
        assert error.error_code == ErrorCode.CONFIG_VALIDATION
        assert error.context["field"] == "max_attempts"
        assert error.context["value"] == "0"

    def test_invalid_credentials(self) -> None:
        error = ConfigError.invalid_credentials("creds", "expected exactly 1 entry, found 2")
        assert "creds" in error.message
        assert error.error_code == ErrorCode.CONFIG_CREDENTIALS
        assert not error.is_retryable


class TestRetryClassification:
    """Which errors a later pass may resolve on its own."""

    def test_resource_not_ready(self) -> None:
        error = ResourceNotReadyError.secret_missing("creds")
        assert error.is_retryable
        assert error.error_code == ErrorCode.RESOURCE_NOT_READY
        assert error.context == {"secret": "creds"}

    def test_connectivity(self) -> None:
        cause = OSError("refused")
        error = ConnectivityError.attempts_exhausted("https://es:9200", 10, cause)
        assert error.is_retryable
        assert error.cause is cause
        assert "10 attempts" in error.message

    def test_remote_request_failed(self) -> None:
        error = RemoteAPIError.request_failed("PUT", "/_ilm/policy/p", "rejected", status=400)
        assert error.is_retryable
        assert error.status == 400
        assert error.message == "PUT /_ilm/policy/p failed: rejected"

    def test_remote_without_status(self) -> None:
        error = RemoteAPIError.request_failed("GET", "/", "refused")
        assert error.status is None

    def test_invalid_response_is_not_retryable(self) -> None:
        error = RemoteAPIError.invalid_response("/_security/user", "expected an object")
        assert not error.is_retryable
        assert error.error_code == ErrorCode.REMOTE_INVALID_RESPONSE

    def test_not_found(self) -> None:
        error = NotFoundError.resource("/_ilm/policy/p")
        assert error.error_code == ErrorCode.REMOTE_NOT_FOUND
        assert not isinstance(error, RemoteAPIError)


class TestExceptionHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "error_class",
        [ConfigError, ResourceNotReadyError, ConnectivityError, RemoteAPIError, NotFoundError],
    )
    def test_all_inherit_from_base(self, error_class: type[LogStoreError]) -> None:
        assert issubclass(error_class, LogStoreError)

    def test_catch_by_base(self) -> None:
        with pytest.raises(LogStoreError):
            raise NotFoundError.resource("/x")
