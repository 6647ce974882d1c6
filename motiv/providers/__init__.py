"""
Model backend adapters.

The backend is selected once from configuration with ``create_provider``.
"""

from typing import Optional

from ..models import ProviderConfig, ProviderKind
from .base import ParsedResponse, ProviderAdapter, ToolCall, ToolOutput
from .claude import ClaudeAdapter
from .gemini import GeminiAdapter
from .openai_compatible import OpenAICompatibleAdapter
from .retry import RETRYABLE_STATUS_CODES, RetryTransport, is_retryable

ADAPTERS: dict[ProviderKind, type[ProviderAdapter]] = {
    ProviderKind.CLAUDE: ClaudeAdapter,
    ProviderKind.GEMINI: GeminiAdapter,
    ProviderKind.OPENAI_COMPATIBLE: OpenAICompatibleAdapter,
}


def create_provider(
    config: ProviderConfig,
    transport: Optional[RetryTransport] = None,
) -> ProviderAdapter:
    """
    Build the adapter for the configured backend.

    Args:
        config: Provider configuration
        transport: Retry transport to send requests through

    Returns:
        A ProviderAdapter instance
    """
    adapter_cls = ADAPTERS[config.kind]
    return adapter_cls(
        transport or RetryTransport(),
        api_url=config.api_url,
        model=config.model,
        max_tokens=config.max_tokens,
    )


__all__ = [
    "ADAPTERS",
    "ClaudeAdapter",
    "GeminiAdapter",
    "OpenAICompatibleAdapter",
    "ParsedResponse",
    "ProviderAdapter",
    "RETRYABLE_STATUS_CODES",
    "RetryTransport",
    "ToolCall",
    "ToolOutput",
    "create_provider",
    "is_retryable",
]
