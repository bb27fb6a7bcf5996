from __future__ import annotations

import asyncio
from collections.abc import Sequence

from status_monitor.core.logging import logger
from status_monitor.core.metrics import record_check
from status_monitor.schemas import CheckResult, HealthStatus, ProviderConfig

from .checker import ProviderChecker, build_result
from .pinger import EndpointPinger
from .registry import default_endpoint_for


async def run_provider_checks(
    configs: Sequence[ProviderConfig],
    *,
    checker: ProviderChecker,
    pinger: EndpointPinger | None = None,
    concurrency: int = 5,
) -> list[CheckResult]:
    """
    并发探测一批配置（信号量限制并发数），每个配置同时发起探测与 ping

    单个配置的失败只体现在它自己的结果上，不会中断整批；结果按名称排序。
    """
    if not configs:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run_one(config: ProviderConfig) -> CheckResult:
        async with semaphore:
            endpoint = config.endpoint or default_endpoint_for(config.type)
            ping_task = pinger.ping(endpoint) if pinger else _no_ping()
            outcome, ping_latency = await asyncio.gather(
                checker.check(config), ping_task, return_exceptions=True
            )

        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            logger.error(f"provider_check_crashed provider={config.name}: {outcome}")
            outcome = build_result(
                config,
                status=HealthStatus.FAILED,
                message=str(outcome) or type(outcome).__name__,
            )
        if isinstance(ping_latency, BaseException):
            ping_latency = None

        result = outcome.model_copy(update={"ping_latency_ms": ping_latency})
        record_check(result.type.value, result.status.value, result.latency_ms)
        return result

    results = await asyncio.gather(*(_run_one(config) for config in configs))
    return sorted(results, key=lambda item: item.name)


async def _no_ping() -> None:
    return None
