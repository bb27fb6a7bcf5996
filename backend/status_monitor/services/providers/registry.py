from __future__ import annotations

from status_monitor.schemas import ProviderType

from .anthropic import AnthropicAdapter
from .base import ProviderAdapter
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter

_ADAPTERS: dict[ProviderType, ProviderAdapter] = {}


def register_adapter(adapter: ProviderAdapter) -> None:
    _ADAPTERS[adapter.provider_type] = adapter


def get_adapter(provider_type: ProviderType | str) -> ProviderAdapter | None:
    normalized = (
        provider_type
        if isinstance(provider_type, ProviderType)
        else ProviderType.normalize(provider_type)
    )
    if normalized is None:
        return None
    return _ADAPTERS.get(normalized)


def default_endpoint_for(provider_type: ProviderType | str) -> str:
    adapter = get_adapter(provider_type)
    return adapter.default_endpoint if adapter else ""


for _adapter in (OpenAIAdapter(), AnthropicAdapter(), GeminiAdapter()):
    register_adapter(_adapter)
