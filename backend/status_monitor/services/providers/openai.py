from __future__ import annotations

from status_monitor.schemas import ProviderConfig, ProviderType

from .base import PING_PROMPT, ProbeRequest, ProviderAdapter
from .stream_parsers import OpenAIStreamParser, StreamParser
from .upstream_url import build_openai_url, is_responses_endpoint

OPENAI_DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"


class OpenAIAdapter(ProviderAdapter):
    """OpenAI 及兼容网关：Chat Completions，endpoint 以 /responses 结尾时改用 Responses API"""

    provider_type = ProviderType.OPENAI
    default_endpoint = OPENAI_DEFAULT_ENDPOINT

    def build_request(self, config: ProviderConfig) -> ProbeRequest:
        url = build_openai_url(config.endpoint, self.default_endpoint)
        if is_responses_endpoint(config.endpoint):
            payload = {
                "model": config.model,
                "input": PING_PROMPT,
                "max_output_tokens": 16,
                "stream": True,
            }
        else:
            payload = {
                "model": config.model,
                "messages": [{"role": "user", "content": PING_PROMPT}],
                "max_tokens": 1,
                "temperature": 0,
                "stream": True,
            }
        headers = self.merge_headers(
            {
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
                "Accept": "text/event-stream",
            },
            config,
        )
        return ProbeRequest(
            url=url,
            json=payload,
            headers=headers,
            display_endpoint=self.resolve_endpoint(config),
        )

    def create_parser(self) -> StreamParser:
        return OpenAIStreamParser()
