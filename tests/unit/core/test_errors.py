"""Tests for failure classification."""

import pytest

from taxoslug.core.errors import (
    DEFAULT_USER_MESSAGE,
    ErrorKind,
    SlugCollisionError,
    TaxonomyFetchError,
    classify,
    describe_failure,
    should_retry,
    with_error_handling,
)


class TestClassify:
    """Tests for classify()."""

    def test_auth_error(self) -> None:
        """401 responses are auth failures that redirect to login."""
        descriptor = classify(Exception("401 Unauthorized"))

        assert descriptor.kind == ErrorKind.AUTH
        assert descriptor.retryable is False
        assert descriptor.redirect_hint == "/login"
        assert descriptor.status_code == 401

    def test_network_error(self) -> None:
        """Fetch failures are retryable network errors."""
        descriptor = classify(Exception("Failed to fetch"))

        assert descriptor.kind == ErrorKind.NETWORK
        assert descriptor.retryable is True

    def test_network_rule_wins_over_server_rule(self) -> None:
        """Rules are matched in priority order."""
        assert classify(Exception("fetch failed with 500")).kind == ErrorKind.NETWORK

    def test_validation_error_uses_context(self) -> None:
        """Validation messages name the subject when one is given."""
        descriptor = classify(ValueError("400 Bad Request"), context="specialty")

        assert descriptor.kind == ErrorKind.VALIDATION
        assert descriptor.retryable is False
        assert descriptor.status_code == 400
        assert descriptor.user_message.startswith("Invalid specialty.")

    def test_not_found_error(self) -> None:
        """404 responses are not retried."""
        descriptor = classify(LookupError("404 Not Found"), context="Cardiology")

        assert descriptor.kind == ErrorKind.NOT_FOUND
        assert descriptor.retryable is False
        assert descriptor.status_code == 404
        assert descriptor.user_message.startswith("Cardiology not found.")

    def test_rate_limited(self) -> None:
        """429 responses are retryable."""
        descriptor = classify(Exception("429 Too Many Requests"))

        assert descriptor.kind == ErrorKind.RATE_LIMITED
        assert descriptor.retryable is True
        assert descriptor.status_code == 429

    @pytest.mark.parametrize(
        ("message", "status"),
        [
            ("503 Service Unavailable", 503),
            ("upstream returned 502", 502),
            ("Internal Server Error", 500),
            ("Gateway Timeout after 504 ms", 504),
        ],
    )
    def test_server_error_status(self, message: str, status: int) -> None:
        """Server errors take the first three-digit number as status."""
        descriptor = classify(Exception(message))

        assert descriptor.kind == ErrorKind.SERVER
        assert descriptor.retryable is True
        assert descriptor.status_code == status

    def test_timeout_is_network(self) -> None:
        """Timeouts are retryable network errors."""
        descriptor = classify(TimeoutError("Request timeout"))

        assert descriptor.kind == ErrorKind.NETWORK
        assert descriptor.user_message == "Request timed out. Please try again."

    def test_chunk_load_is_client(self) -> None:
        """Resource loading failures are retryable client errors."""
        descriptor = classify(Exception("ChunkLoadError: Loading chunk 7 failed"))

        assert descriptor.kind == ErrorKind.CLIENT
        assert descriptor.retryable is True

    def test_matching_is_case_sensitive(self) -> None:
        """Lowercase 'unauthorized' does not match the auth rule."""
        assert classify(Exception("unauthorized")).kind == ErrorKind.UNKNOWN

    def test_unknown_error(self) -> None:
        """Unrecognised failures default to retryable unknown."""
        descriptor = classify(RuntimeError("boom"))

        assert descriptor.kind == ErrorKind.UNKNOWN
        assert descriptor.retryable is True
        assert descriptor.user_message == DEFAULT_USER_MESSAGE
        assert descriptor.message == "boom"

    def test_string_error(self) -> None:
        """A bare string is its own user message."""
        descriptor = classify("Specialty list unavailable")

        assert descriptor.kind == ErrorKind.UNKNOWN
        assert descriptor.user_message == "Specialty list unavailable"

    def test_non_error_object(self) -> None:
        """Arbitrary objects never make classify() fail."""
        assert classify({"status": 500}).kind == ErrorKind.UNKNOWN
        assert classify(None).user_message == DEFAULT_USER_MESSAGE

    def test_library_error_keeps_descriptor(self) -> None:
        """Errors raised by taxoslug carry their own descriptor."""
        error = SlugCollisionError("ent", "ENT", "Ent")

        descriptor = classify(error)

        assert descriptor.kind == ErrorKind.SLUG_COLLISION
        assert descriptor.retryable is False

    def test_descriptor_to_dict(self) -> None:
        """Descriptors serialize with camelCase keys."""
        data = classify(Exception("401 Unauthorized")).to_dict()

        assert data["kind"] == "auth"
        assert data["redirectHint"] == "/login"
        assert data["statusCode"] == 401


class TestShouldRetry:
    """Tests for should_retry()."""

    def test_retryable_errors(self) -> None:
        """Transient failures are retried."""
        assert should_retry(Exception("Failed to fetch"))
        assert should_retry(Exception("503 Service Unavailable"))
        assert should_retry(Exception("429 Too Many Requests"))

    def test_non_retryable_errors(self) -> None:
        """Auth, validation and not-found failures are not retried."""
        assert not should_retry(Exception("401 Unauthorized"))
        assert not should_retry(Exception("Invalid payload"))
        assert not should_retry(Exception("404 Not Found"))

    def test_auth_kind_is_never_retried(self) -> None:
        """A retryable flag on an auth descriptor is overridden."""
        from taxoslug.core.errors import ErrorDescriptor

        error = TaxonomyFetchError(
            ErrorDescriptor(kind=ErrorKind.AUTH, retryable=True, user_message="x")
        )

        assert not should_retry(error)


class TestDescribeFailure:
    """Tests for subject-specific user messages."""

    def test_network_message(self) -> None:
        """Network failures mention the operation and subject."""
        message = describe_failure(Exception("Network down"), "Cardiology", "loading cases")
        assert message == (
            "Network error while loading cases for Cardiology. Please check your connection."
        )

    def test_not_found_message(self) -> None:
        """Not-found failures point at the specialty list."""
        message = describe_failure(Exception("404"), "Cardiology", "loading cases")
        assert message == 'Specialty "Cardiology" not found. Please browse available specialties.'

    def test_without_operation_uses_descriptor(self) -> None:
        """Without subject and operation the generic message is used."""
        assert describe_failure(Exception("boom")) == DEFAULT_USER_MESSAGE


class TestWithErrorHandling:
    """Tests for with_error_handling()."""

    @pytest.mark.asyncio
    async def test_reports_and_reraises(self) -> None:
        """The descriptor is reported and the original error re-raised."""
        reported = []

        async def failing() -> None:
            raise RuntimeError("503 Service Unavailable")

        with pytest.raises(RuntimeError):
            await with_error_handling(failing, "taxonomy", reported.append)

        assert len(reported) == 1
        assert reported[0].kind == ErrorKind.SERVER

    @pytest.mark.asyncio
    async def test_returns_value(self) -> None:
        """Successful operations pass their value through."""

        async def succeeding() -> int:
            return 7

        assert await with_error_handling(succeeding) == 7
