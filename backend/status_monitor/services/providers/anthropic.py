from __future__ import annotations

from status_monitor.schemas import ProviderConfig, ProviderType

from .base import PING_PROMPT, ProbeRequest, ProviderAdapter
from .stream_parsers import AnthropicStreamParser, StreamParser
from .upstream_url import ensure_path

ANTHROPIC_DEFAULT_ENDPOINT = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    provider_type = ProviderType.ANTHROPIC
    default_endpoint = ANTHROPIC_DEFAULT_ENDPOINT

    def build_request(self, config: ProviderConfig) -> ProbeRequest:
        endpoint = self.resolve_endpoint(config)
        headers = self.merge_headers(
            {
                "x-api-key": config.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            config,
        )
        return ProbeRequest(
            url=ensure_path(endpoint, "/v1/messages"),
            json={
                "model": config.model,
                "max_tokens": 10,
                "messages": [{"role": "user", "content": PING_PROMPT}],
                "stream": True,
            },
            headers=headers,
            display_endpoint=endpoint,
        )

    def create_parser(self) -> StreamParser:
        return AnthropicStreamParser()
