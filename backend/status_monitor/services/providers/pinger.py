from __future__ import annotations

import asyncio
import time

import httpx

from status_monitor.core.config import settings
from status_monitor.core.logging import logger

from .upstream_url import origin_of


class EndpointPinger:
    """
    对 provider 主机做轻量 HEAD 请求，测量网络可达性与延迟

    任何 HTTP 响应（包括 401/404/405）都说明主机可达；只有网络错误或超时返回 None。
    """

    def __init__(self, client: httpx.AsyncClient, *, timeout_seconds: float | None = None):
        self._client = client
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.PING_TIMEOUT_SECONDS

    async def ping(self, endpoint: str | None) -> int | None:
        target = origin_of(endpoint or "")
        if target is None:
            return None
        started = time.perf_counter()
        try:
            # 3xx 同样算可达，不跟随跳转
            await self._client.head(target, timeout=self._timeout, follow_redirects=False)
        except asyncio.CancelledError:
            raise
        except (httpx.HTTPError, TimeoutError) as exc:
            logger.debug(f"endpoint_ping_failed target={target}: {type(exc).__name__}")
            return None
        return max(0, int(round((time.perf_counter() - started) * 1000)))
