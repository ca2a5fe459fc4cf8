"""
Module: client.config

Purpose:
    Configuration dataclass for the generation service client: credentials,
    per-variant model names, wall-clock timeout and retry policy.

Key Classes:
    - ClientConfig: Immutable client settings

Key Functions:
    - parse_api_keys(raw): Split a key, comma-separated keys or a JSON array
    - ClientConfig.from_env(): Read settings from the process environment

Dependencies:
    - dataclasses: Frozen dataclass support
    - common.errors: ConfigurationError

Used By:
    - client.transport: GenerationClient
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from question_toolkit.common.errors import ConfigurationError

PLACEHOLDER_KEY = "your-gemini-api-key-here"

DEFAULT_EXTRACTION_MODEL = "gemini-2.5-flash"
DEFAULT_LOCALIZATION_MODEL = "gemini-2.5-pro"
DEFAULT_GENERATION_MODEL = "gemini-2.5-flash"


def parse_api_keys(raw: Optional[str]) -> Tuple[str, ...]:
    """
    Parse the credential variable.

    Accepts a single key, comma-separated keys, or a JSON array of keys.
    Blank entries and the placeholder key are dropped.

    Example:
        >>> parse_api_keys('k1, k2')
        ('k1', 'k2')
        >>> parse_api_keys('["k1", "k2"]')
        ('k1', 'k2')
    """
    if not raw or not raw.strip():
        return ()
    text = raw.strip()
    if text.startswith("[") and text.endswith("]"):
        try:
            values = json.loads(text)
        except json.JSONDecodeError:
            values = [text]
        if not isinstance(values, list):
            values = [text]
    else:
        values = text.split(",")
    keys = (str(v).strip() for v in values)
    return tuple(k for k in keys if k and k != PLACEHOLDER_KEY)


def env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings for GenerationClient.

    Attributes:
        api_keys: One or more credentials, rotated round-robin per attempt
        extraction_model: Model for structured text extraction
        localization_model: Vision model for bounding-box localization
        generation_model: Model for prompt-driven generation
        timeout_ms: Wall-clock timeout per attempt (default 360000)
        retry_base_delay_ms: Backoff base; delay is base * 2**attempt (default 2000)
        max_retries: Retries on rate-limit/overload responses (default 3)
        connection_check_timeout_ms: Timeout for check_connection() (default 10000)
        temperature: Sampling temperature, None for the service default
    """

    api_keys: Tuple[str, ...]
    extraction_model: str = DEFAULT_EXTRACTION_MODEL
    localization_model: str = DEFAULT_LOCALIZATION_MODEL
    generation_model: str = DEFAULT_GENERATION_MODEL
    timeout_ms: int = 360_000
    retry_base_delay_ms: int = 2_000
    max_retries: int = 3
    connection_check_timeout_ms: int = 10_000
    temperature: Optional[float] = None

    def __post_init__(self) -> None:
        if isinstance(self.api_keys, str):
            object.__setattr__(self, "api_keys", parse_api_keys(self.api_keys))
        else:
            object.__setattr__(self, "api_keys", tuple(self.api_keys))
        if not self.api_keys:
            raise ConfigurationError(
                "Gemini API key not configured. Set GEMINI_API_KEY in the environment."
            )
        for name in ("extraction_model", "localization_model", "generation_model"):
            if not getattr(self, name):
                raise ConfigurationError(f"{name} must not be empty")
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"timeout_ms must be positive: {self.timeout_ms}")
        if self.retry_base_delay_ms < 0:
            raise ConfigurationError(f"retry_base_delay_ms must be >= 0: {self.retry_base_delay_ms}")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0: {self.max_retries}")
        if self.connection_check_timeout_ms <= 0:
            raise ConfigurationError(
                f"connection_check_timeout_ms must be positive: {self.connection_check_timeout_ms}"
            )

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def retry_base_delay_s(self) -> float:
        return self.retry_base_delay_ms / 1000.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> ClientConfig:
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ`` (tests).

        Raises:
            ConfigurationError: If GEMINI_API_KEY is missing or a numeric
                variable is malformed.
        """
        env = os.environ if env is None else env
        return cls(
            api_keys=parse_api_keys(env.get("GEMINI_API_KEY")),
            extraction_model=env.get("GEMINI_EXTRACTION_MODEL") or DEFAULT_EXTRACTION_MODEL,
            localization_model=env.get("GEMINI_LOCALIZATION_MODEL") or DEFAULT_LOCALIZATION_MODEL,
            generation_model=env.get("GEMINI_GENERATION_MODEL") or DEFAULT_GENERATION_MODEL,
            timeout_ms=env_int(env, "GEMINI_REQUEST_TIMEOUT_MS", 360_000),
            retry_base_delay_ms=env_int(env, "GEMINI_RETRY_BASE_DELAY_MS", 2_000),
            max_retries=env_int(env, "GEMINI_MAX_RETRIES", 3),
        )

    def __repr__(self) -> str:
        # Keys are never printed
        return (
            f"ClientConfig(keys={len(self.api_keys)}, extraction={self.extraction_model!r}, "
            f"localization={self.localization_model!r}, generation={self.generation_model!r}, "
            f"timeout_ms={self.timeout_ms}, max_retries={self.max_retries})"
        )
