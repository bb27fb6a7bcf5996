"""
单个 provider 的健康探测

流程：按 provider 类型构造最小化的 stream=true 请求 → 在超时内发起请求 →
非 2xx 直接判定 failed 并提取错误信息 → 2xx 时增量消费整个流 → 按耗时分级。

check() 永不抛出（取消除外），所有失败都折叠为 status=failed 的 CheckResult。
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable

import httpx

from status_monitor.core.config import settings
from status_monitor.core.logging import logger, mask_key
from status_monitor.schemas import CheckResult, HealthStatus, ProviderConfig
from status_monitor.utils.time_utils import Datetime

from .registry import get_adapter

ERROR_MESSAGE_MAX_CHARS = 280
TIMEOUT_MESSAGE = "request timed out"
EMPTY_BODY_MESSAGE = "empty response body"


def extract_error_message(body: str, status_code: int) -> str:
    """
    从错误响应体中提取可读信息：
    error.message → error（字符串）→ message → JSON 原文；非 JSON 时截断原文；都没有则 HTTP <code>
    """
    text = (body or "").strip()
    if text:
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None

        if isinstance(parsed, dict):
            error = parsed.get("error")
            if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
                return error["message"][:ERROR_MESSAGE_MAX_CHARS]
            if isinstance(error, str) and error:
                return error[:ERROR_MESSAGE_MAX_CHARS]
            if isinstance(parsed.get("message"), str) and parsed["message"]:
                return parsed["message"][:ERROR_MESSAGE_MAX_CHARS]
            return json.dumps(parsed, ensure_ascii=False)[:ERROR_MESSAGE_MAX_CHARS]
        return text[:ERROR_MESSAGE_MAX_CHARS]
    return f"HTTP {status_code}"


def build_result(
    config: ProviderConfig,
    *,
    status: HealthStatus,
    message: str,
    latency_ms: int | None = None,
    endpoint: str | None = None,
) -> CheckResult:
    return CheckResult(
        id=config.id,
        name=config.name,
        type=config.type,
        endpoint=endpoint or config.endpoint or "",
        model=config.model,
        status=status,
        latency_ms=latency_ms,
        message=message,
        checked_at=Datetime.now(),
        group_name=config.group_name,
    )


class ProviderChecker:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout_seconds: float | None = None,
        degraded_threshold_ms: int | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._client = client
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.CHECK_TIMEOUT_SECONDS
        self._degraded_threshold_ms = (
            degraded_threshold_ms
            if degraded_threshold_ms is not None
            else settings.CHECK_DEGRADED_THRESHOLD_MS
        )
        self._clock = clock

    @property
    def degraded_threshold_ms(self) -> int:
        return self._degraded_threshold_ms

    def classify(self, latency_ms: int) -> HealthStatus:
        if latency_ms <= self._degraded_threshold_ms:
            return HealthStatus.OPERATIONAL
        return HealthStatus.DEGRADED

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int(round((self._clock() - started) * 1000)))

    async def check(self, config: ProviderConfig) -> CheckResult:
        adapter = get_adapter(config.type)
        if adapter is None:
            return build_result(
                config,
                status=HealthStatus.FAILED,
                message=f"unsupported provider type: {config.type}",
            )

        try:
            request = adapter.build_request(config)
        except Exception as exc:
            logger.warning(f"provider_check_build_failed provider={config.name}: {exc}")
            return build_result(config, status=HealthStatus.FAILED, message=str(exc) or type(exc).__name__)

        parser = adapter.create_parser()
        display_endpoint = request.display_endpoint or request.url
        received = 0
        started = self._clock()

        try:
            async with asyncio.timeout(self._timeout):
                async with self._client.stream(
                    "POST",
                    request.url,
                    json=request.json,
                    headers=request.headers,
                    timeout=self._timeout,
                ) as response:
                    if not response.is_success:
                        body = await response.aread()
                        latency_ms = self._elapsed_ms(started)
                        message = extract_error_message(
                            body.decode("utf-8", errors="replace"), response.status_code
                        )
                        logger.info(
                            f"provider_check_http_error provider={config.name} "
                            f"status_code={response.status_code} latency_ms={latency_ms} "
                            f"key={mask_key(config.api_key)}"
                        )
                        return build_result(
                            config,
                            status=HealthStatus.FAILED,
                            message=message,
                            latency_ms=latency_ms,
                            endpoint=display_endpoint,
                        )

                    async for chunk in response.aiter_bytes():
                        received += len(chunk)
                        parser.feed(chunk)
                        if parser.done:
                            break
                    parser.finish()
        except asyncio.CancelledError:
            raise
        except (TimeoutError, httpx.TimeoutException):
            logger.info(f"provider_check_timeout provider={config.name} timeout={self._timeout}s")
            return build_result(
                config, status=HealthStatus.FAILED, message=TIMEOUT_MESSAGE, endpoint=display_endpoint
            )
        except Exception as exc:
            logger.info(f"provider_check_error provider={config.name} error={type(exc).__name__}: {exc}")
            return build_result(
                config,
                status=HealthStatus.FAILED,
                message=str(exc) or type(exc).__name__,
                endpoint=display_endpoint,
            )

        if received == 0:
            return build_result(
                config, status=HealthStatus.FAILED, message=EMPTY_BODY_MESSAGE, endpoint=display_endpoint
            )

        latency_ms = self._elapsed_ms(started)
        status = self.classify(latency_ms)
        message = (
            f"stream ok ({latency_ms}ms)"
            if status is HealthStatus.OPERATIONAL
            else f"slow response ({latency_ms}ms)"
        )
        return build_result(
            config,
            status=status,
            message=message,
            latency_ms=latency_ms,
            endpoint=display_endpoint,
        )
