"""Common utilities shared across the toolkit."""

from __future__ import annotations

from .errors import (
    QuestionToolkitError,
    ConfigurationError,
    InvalidDocumentError,
    TransportError,
    AuthenticationError,
    MalformedRequestError,
    ModelNotFoundError,
    GenerationTimeoutError,
    RateLimitExceededError,
    ServiceOverloadedError,
    EmptyResponseError,
    GenerationServiceError,
    PayloadError,
    ResponsePayloadCorruptError,
    ResponseShapeError,
    RecordValidationError,
)

__all__ = [
    "QuestionToolkitError",
    "ConfigurationError",
    "InvalidDocumentError",
    "TransportError",
    "AuthenticationError",
    "MalformedRequestError",
    "ModelNotFoundError",
    "GenerationTimeoutError",
    "RateLimitExceededError",
    "ServiceOverloadedError",
    "EmptyResponseError",
    "GenerationServiceError",
    "PayloadError",
    "ResponsePayloadCorruptError",
    "ResponseShapeError",
    "RecordValidationError",
]
