from __future__ import annotations

from typing import Any

import httpx

from status_monitor.core.config import settings

DEFAULT_USER_AGENT = f"status-monitor/{settings.VERSION}"


def create_async_http_client(
    *,
    timeout: float | httpx.Timeout | None = None,
    http2: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
    headers: dict[str, str] | None = None,
    **client_kwargs: Any,
) -> httpx.AsyncClient:
    """
    创建共享的 httpx.AsyncClient。

    - 某些代理/网关（例如启用了「封锁 AI 爬虫」规则的站点）会拦截 SDK 默认 UA，
      这里统一改成普通应用的 UA。
    - transport 主要用于测试注入 httpx.MockTransport。
    """
    merged_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        merged_headers.update(headers)

    if transport is not None:
        client_kwargs["transport"] = transport

    return httpx.AsyncClient(
        timeout=timeout,
        http2=http2,
        headers=merged_headers,
        follow_redirects=True,
        **client_kwargs,
    )
