"""Generation service transport and its configuration."""

from .config import ClientConfig, parse_api_keys
from .transport import (
    BlobPart,
    ConnectionStatus,
    EndpointVariant,
    GenerationClient,
    TextPart,
)

__all__ = [
    "BlobPart",
    "ClientConfig",
    "ConnectionStatus",
    "EndpointVariant",
    "GenerationClient",
    "TextPart",
    "parse_api_keys",
]
