"""
Module: client.transport

Purpose:
    Blocking request/response client for the Gemini generation service.
    Sends prompt text plus inline documents and returns the raw text of
    the first candidate. Owns key rotation, the strict wall-clock timeout,
    retry with exponential backoff, and SDK error mapping.

Key Classes:
    - GenerationClient: call(parts, variant) -> str
    - TextPart / BlobPart: Request parts
    - EndpointVariant: Which configured model a call targets
    - ConnectionStatus: Result of check_connection()

Dependencies:
    - google-genai: Gemini SDK (Client, types, errors)
    - httpx: Transport-level timeout and network errors raised by the SDK
    - concurrent.futures (std): Worker thread per attempt for the timeout

Used By:
    - extractor.pipeline: Extraction calls
    - extractor.localizer: Localization calls
    - generator.pipeline: Generation calls
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Union

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from question_toolkit.client.config import ClientConfig
from question_toolkit.common.errors import (
    AuthenticationError,
    EmptyResponseError,
    GenerationServiceError,
    GenerationTimeoutError,
    MalformedRequestError,
    ModelNotFoundError,
    RateLimitExceededError,
    ServiceOverloadedError,
    TransportError,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, int], Any]


class EndpointVariant(str, Enum):
    """Call purpose; each maps to a configured model."""

    EXTRACTION = "extraction"
    LOCALIZATION = "localization"
    GENERATION = "generation"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class BlobPart:
    """Inline binary part. ``data`` is copied on construction."""

    data: bytes
    mime_type: str = "application/pdf"

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))


Part = Union[TextPart, BlobPart]


@dataclass(frozen=True)
class ConnectionStatus:
    success: bool
    detail: str


def default_client_factory(api_key: str, timeout_ms: int) -> genai.Client:
    """Build an SDK client with the HTTP timeout set."""
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=timeout_ms),
    )


class GenerationClient:
    """
    Client for the external generation service.

    Thread-safe: one instance may be shared by concurrent chunk, batch and
    localization workers.

    Args:
        config: ClientConfig with credentials, models and retry policy
        client_factory: ``(api_key, timeout_ms) -> sdk client``; defaults to
            ``genai.Client``. Tests inject a fake here.
        sleep: Backoff sleep function
        clock: Monotonic clock used for deadline accounting

    Example:
        >>> client = GenerationClient(ClientConfig.from_env())
        >>> text = client.call([TextPart("Say hello")], EndpointVariant.GENERATION)
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._factory = client_factory or default_client_factory
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._key_index = 0
        self._clients: Dict[str, Any] = {}

    @property
    def config(self) -> ClientConfig:
        return self._config

    def model_for(self, variant: EndpointVariant) -> str:
        if variant is EndpointVariant.EXTRACTION:
            return self._config.extraction_model
        if variant is EndpointVariant.LOCALIZATION:
            return self._config.localization_model
        return self._config.generation_model

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    def call(
        self,
        parts: Sequence[Part],
        variant: EndpointVariant,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Send one request and return the raw response text.

        Rate-limit (429) and overload (503) responses are retried up to
        ``max_retries`` times with delay ``base * 2**attempt``. Every other
        failure is terminal.

        Args:
            parts: Prompt text and inline documents, in order
            variant: Which configured model to target
            deadline: Seconds budget measured from the start of this call.
                No retry is started once elapsed time plus the next delay
                would exceed it.

        Returns:
            Text of the first candidate.

        Raises:
            TransportError: Subclass describing the final failure.
        """
        if not parts:
            raise ValueError("parts must not be empty")
        model = self.model_for(variant)
        contents = [types.Content(role="user", parts=[_to_sdk_part(p) for p in parts])]
        gen_config = self._generation_config()

        started = self._clock()
        attempt = 0
        while True:
            elapsed = self._clock() - started
            timeout_s = self._config.timeout_s
            if deadline is not None:
                timeout_s = max(0.001, min(timeout_s, deadline - elapsed))
            try:
                text = self._attempt(self._next_key(), model, contents, gen_config, timeout_s)
                if attempt:
                    logger.info(
                        f"{variant} call succeeded after {attempt} retries",
                        extra={"model": model, "attempt": attempt + 1},
                    )
                return text
            except TransportError as e:
                e.model = model
                e.attempts = attempt + 1
                if not e.retryable or attempt >= self._config.max_retries:
                    if e.retryable:
                        logger.error(
                            f"{variant} call failed after {attempt + 1} attempts: {e}",
                            extra={"model": model, "status": e.status},
                        )
                    raise

                delay = self._config.retry_base_delay_s * (2 ** attempt)
                elapsed = self._clock() - started
                if deadline is not None and elapsed + delay > deadline:
                    logger.warning(
                        f"{variant} call: deadline {deadline:.1f}s leaves no room for a "
                        f"{delay:.1f}s retry (elapsed {elapsed:.1f}s)",
                        extra={"model": model, "attempt": attempt + 1},
                    )
                    raise

                logger.warning(
                    f"{variant} call got {e.status}; retrying in {delay:.1f}s "
                    f"(retry {attempt + 1}/{self._config.max_retries})",
                    extra={"model": model, "attempt": attempt + 1, "status": e.status},
                )
                self._sleep(delay)
                attempt += 1

    def check_connection(self) -> ConnectionStatus:
        """
        Send a tiny prompt to verify credentials and model access.

        Never raises; the outcome is reported in the returned status.
        """
        model = self._config.generation_model
        contents = [
            types.Content(
                role="user",
                parts=[types.Part.from_text(text='Say "Hello" in JSON format: {"message": "Hello"}')],
            )
        ]
        timeout_s = min(self._config.timeout_s, self._config.connection_check_timeout_ms / 1000.0)
        try:
            text = self._attempt(self._next_key(), model, contents, self._generation_config(), timeout_s)
        except RateLimitExceededError:
            return ConnectionStatus(False, "Rate limit exceeded. Wait a few minutes before testing again.")
        except AuthenticationError:
            return ConnectionStatus(False, "Invalid API key. Check GEMINI_API_KEY.")
        except TransportError as e:
            return ConnectionStatus(False, str(e))
        return ConnectionStatus(True, text[:100])

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _next_key(self) -> str:
        with self._lock:
            key = self._config.api_keys[self._key_index]
            self._key_index = (self._key_index + 1) % len(self._config.api_keys)
            return key

    def _sdk_client(self, api_key: str) -> Any:
        with self._lock:
            client = self._clients.get(api_key)
            if client is None:
                client = self._factory(api_key, self._config.timeout_ms)
                self._clients[api_key] = client
            return client

    def _generation_config(self) -> Optional[types.GenerateContentConfig]:
        if self._config.temperature is None:
            return None
        return types.GenerateContentConfig(temperature=self._config.temperature)

    def _attempt(
        self,
        api_key: str,
        model: str,
        contents: list,
        gen_config: Optional[types.GenerateContentConfig],
        timeout_s: float,
    ) -> str:
        """Run one SDK call on a worker thread, abandoning it after timeout_s."""
        sdk = self._sdk_client(api_key)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="genai-call")
        try:
            future = executor.submit(
                sdk.models.generate_content, model=model, contents=contents, config=gen_config
            )
            try:
                response = future.result(timeout=timeout_s)
            except FutureTimeoutError as e:
                future.cancel()
                raise GenerationTimeoutError(
                    f"Request to {model} exceeded {timeout_s:.1f}s", model=model
                ) from e
            except genai_errors.APIError as e:
                raise map_api_error(e, model) from e
            except httpx.TimeoutException as e:
                raise GenerationTimeoutError(f"Request to {model} timed out: {e}", model=model) from e
            except httpx.HTTPError as e:
                raise GenerationServiceError(f"Network error calling {model}: {e}", model=model) from e
        finally:
            executor.shutdown(wait=False)

        return _response_text(response, model)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _to_sdk_part(part: Part) -> types.Part:
    if isinstance(part, TextPart):
        return types.Part.from_text(text=part.text)
    if isinstance(part, BlobPart):
        return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
    raise TypeError(f"Unsupported part type: {type(part).__name__}")


def map_api_error(error: genai_errors.APIError, model: str) -> TransportError:
    """Map an SDK APIError to the matching TransportError subclass."""
    status = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error)
    detail = f"{model}: {message}"
    if status in (401, 403):
        return AuthenticationError(f"Authentication failed for {detail}", status=status, model=model)
    if status == 400:
        return MalformedRequestError(f"Request rejected by {detail}", status=status, model=model)
    if status == 404:
        return ModelNotFoundError(f"Model not found or unsupported: {detail}", status=status, model=model)
    if status == 429:
        return RateLimitExceededError(f"Rate limit exceeded for {detail}", status=status, model=model)
    if status == 503:
        return ServiceOverloadedError(f"Service overloaded for {detail}", status=status, model=model)
    if status in (408, 504):
        return GenerationTimeoutError(f"Service deadline exceeded for {detail}", status=status, model=model)
    return GenerationServiceError(f"Generation service error ({status}) for {detail}", status=status, model=model)


def _response_text(response: Any, model: str) -> str:
    candidates = getattr(response, "candidates", None)
    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        reason = getattr(feedback, "block_reason", None)
        suffix = f" (blocked: {reason})" if reason else ""
        raise EmptyResponseError(f"No valid response from {model}{suffix}", model=model)
    text = getattr(response, "text", None)
    if not text or not text.strip():
        raise EmptyResponseError(f"{model} returned an empty response", model=model)
    return text
