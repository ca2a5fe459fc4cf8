"""
Module: common.errors

Purpose:
    Exception taxonomy shared by the extraction and generation pipelines.
    Every library error derives from QuestionToolkitError so callers can
    catch the whole family at a pipeline boundary.

Key Classes:
    - ConfigurationError: Missing credential or invalid settings
    - InvalidDocumentError: Unreadable PDF or zero pages
    - TransportError: Generation service failures (see subclasses)
    - PayloadError: Malformed structured output from the model

Used By:
    - client.transport: Maps SDK failures to TransportError subclasses
    - extractor.repair: Raises PayloadError subclasses
    - extractor.pipeline / generator.pipeline: Convert to result envelopes
"""

from __future__ import annotations

from typing import Optional, Sequence


class QuestionToolkitError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(QuestionToolkitError, ValueError):
    """Raised when configuration is missing or invalid.

    Always raised before any network call is attempted.
    """


class InvalidDocumentError(QuestionToolkitError, ValueError):
    """Raised when a document cannot be opened or has no extractable pages."""


# ─────────────────────────────────────────────────────────────────────────────
# Transport errors
# ─────────────────────────────────────────────────────────────────────────────

class TransportError(QuestionToolkitError):
    """
    Failure talking to the external generation service.

    Attributes:
        status: HTTP status code when one was received.
        model: Model name the request targeted.
        attempts: Number of attempts made before giving up.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        model: Optional[str] = None,
        attempts: int = 1,
    ):
        super().__init__(message)
        self.status = status
        self.model = model
        self.attempts = attempts


class AuthenticationError(TransportError):
    """Credential rejected by the service (401/403)."""


class MalformedRequestError(TransportError):
    """Request rejected as invalid (400), e.g. corrupt or oversized PDF."""


class ModelNotFoundError(TransportError):
    """Configured model does not exist or cannot generate content (404)."""


class GenerationTimeoutError(TransportError):
    """Call exceeded the configured wall-clock timeout."""


class RateLimitExceededError(TransportError):
    """Service kept answering 429 after all retries."""

    retryable = True


class ServiceOverloadedError(TransportError):
    """Service kept answering 503 after all retries."""

    retryable = True


class EmptyResponseError(TransportError):
    """Service answered without any candidate text."""


class GenerationServiceError(TransportError):
    """Any other service-side failure."""


# ─────────────────────────────────────────────────────────────────────────────
# Payload errors
# ─────────────────────────────────────────────────────────────────────────────

class PayloadError(QuestionToolkitError):
    """Structured output from the model could not be used."""


class ResponsePayloadCorruptError(PayloadError):
    """
    Every repair strategy failed to parse the model output.

    Attributes:
        offset: Byte offset (UTF-8) into the raw response of the first
            parse failure.
        context: Raw text surrounding the failure.
        stage_errors: One message per repair stage attempted.
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int = 0,
        context: str = "",
        stage_errors: Sequence[str] = (),
    ):
        detail = f"{message} at byte {offset}"
        if context:
            detail += f" near {context!r}"
        super().__init__(detail)
        self.offset = offset
        self.context = context
        self.stage_errors = list(stage_errors)


class ResponseShapeError(PayloadError):
    """Parsed payload has the wrong top-level shape (array vs object)."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Expected a JSON {expected} but the model returned a JSON {actual}")
        self.expected = expected
        self.actual = actual


class RecordValidationError(PayloadError):
    """
    A parsed record violates a record invariant.

    Attributes:
        field: Offending field name.
        record_id: Identifier of the record, when known.
    """

    def __init__(self, message: str, *, field: str = "", record_id: str = ""):
        prefix = f"Record {record_id}: " if record_id else ""
        super().__init__(f"{prefix}{message}")
        self.field = field
        self.record_id = record_id
