"""
Unit Tests for the Error Hierarchy
"""

import pytest

from question_toolkit.common.errors import (
    AuthenticationError,
    ConfigurationError,
    PayloadError,
    QuestionToolkitError,
    RateLimitExceededError,
    RecordValidationError,
    ResponsePayloadCorruptError,
    ServiceOverloadedError,
    TransportError,
)


class TestErrors:
    """Tests for error classes."""

    @pytest.mark.parametrize(
        "cls,retryable",
        [(RateLimitExceededError, True), (ServiceOverloadedError, True), (AuthenticationError, False)],
    )
    def test_retryable_when_class_then_only_rate_limit_and_overload(self, cls, retryable):
        assert cls("x").retryable is retryable
        assert issubclass(cls, TransportError)

    def test_transport_error_when_created_then_carries_status_model_attempts(self):
        error = RateLimitExceededError("quota", status=429, model="m", attempts=4)
        assert (error.status, error.model, error.attempts) == (429, "m", 4)

    def test_corrupt_error_when_created_then_message_has_offset_and_context(self):
        error = ResponsePayloadCorruptError("Could not parse", offset=17, context='"q1",,')
        assert "byte 17" in str(error)
        assert '"q1",,' in str(error)

    def test_record_validation_error_when_id_known_then_prefixed(self):
        error = RecordValidationError("question text is empty", field="text", record_id="q4")
        assert str(error) == "Record q4: question text is empty"
        assert isinstance(error, PayloadError)

    def test_configuration_error_when_raised_then_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(ConfigurationError, QuestionToolkitError)
