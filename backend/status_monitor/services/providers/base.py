from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from status_monitor.schemas import ProviderConfig, ProviderType

from .stream_parsers import StreamParser

PING_PROMPT = "ping"


@dataclass(frozen=True)
class ProbeRequest:
    url: str
    json: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    # 结果中展示的 endpoint（不含 key 等查询参数）
    display_endpoint: str = ""


class ProviderAdapter(ABC):
    """
    Provider 能力抽象：请求构造 + 流式解析 + 默认 endpoint

    新增 provider 类型只需实现一个子类并注册，调度器无需改动。
    """

    provider_type: ProviderType
    default_endpoint: str

    @abstractmethod
    def build_request(self, config: ProviderConfig) -> ProbeRequest:
        ...

    @abstractmethod
    def create_parser(self) -> StreamParser:
        ...

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        return config.endpoint or self.default_endpoint

    @staticmethod
    def merge_headers(base: dict[str, str], config: ProviderConfig) -> dict[str, str]:
        """自定义请求头覆盖默认值（同名不区分大小写）"""
        merged = dict(base)
        for key, value in (config.request_headers or {}).items():
            for existing in [k for k in merged if k.lower() == key.lower()]:
                merged.pop(existing)
            merged[key] = value
        return merged
