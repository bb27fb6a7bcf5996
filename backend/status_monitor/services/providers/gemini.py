from __future__ import annotations

from status_monitor.schemas import ProviderConfig, ProviderType

from .base import PING_PROMPT, ProbeRequest, ProviderAdapter
from .stream_parsers import GeminiStreamParser, StreamParser
from .upstream_url import append_query, build_gemini_stream_url

GEMINI_DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


class GeminiAdapter(ProviderAdapter):
    """Gemini 使用 streamGenerateContent，API key 通过查询参数传递"""

    provider_type = ProviderType.GEMINI
    default_endpoint = GEMINI_DEFAULT_ENDPOINT

    def build_request(self, config: ProviderConfig) -> ProbeRequest:
        endpoint = self.resolve_endpoint(config)
        stream_url = build_gemini_stream_url(config.endpoint, self.default_endpoint, config.model)
        return ProbeRequest(
            url=append_query(stream_url, {"key": config.api_key}),
            json={
                "contents": [{"role": "user", "parts": [{"text": PING_PROMPT}]}],
                "generationConfig": {"maxOutputTokens": 10},
            },
            headers=self.merge_headers({"Content-Type": "application/json"}, config),
            display_endpoint=endpoint,
        )

    def create_parser(self) -> StreamParser:
        return GeminiStreamParser()
