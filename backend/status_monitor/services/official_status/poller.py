from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Mapping

import httpx

from status_monitor.core.config import settings
from status_monitor.core.logging import logger
from status_monitor.schemas import OfficialStatus, ProviderType

from .sources import DEFAULT_SOURCES, OfficialStatusFetchError, StatuspageSource


class OfficialStatusPoller:
    """
    官方状态轮询器

    每个有官方状态源的 provider 类型一个独立的后台任务，与主轮询循环生命周期互不影响。
    拉取失败时保留上一次的缓存值，不清空。
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        sources: Mapping[ProviderType, StatuspageSource] | None = None,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ):
        self._client = client
        self._sources = dict(DEFAULT_SOURCES if sources is None else sources)
        self._interval = interval_seconds or settings.OFFICIAL_STATUS_CHECK_INTERVAL_SECONDS
        self._timeout = timeout_seconds or settings.OFFICIAL_STATUS_TIMEOUT_SECONDS
        self._statuses: dict[ProviderType, OfficialStatus] = {}
        self._tasks: list[asyncio.Task[None]] = []

    def get_official_status(self, provider_type: ProviderType | str) -> OfficialStatus | None:
        normalized = (
            provider_type
            if isinstance(provider_type, ProviderType)
            else ProviderType.normalize(provider_type)
        )
        if normalized is None:
            return None
        return self._statuses.get(normalized)

    async def refresh_once(self, provider_type: ProviderType) -> OfficialStatus | None:
        source = self._sources.get(provider_type)
        if source is None:
            return None
        try:
            status = await source.fetch(self._client, timeout=self._timeout)
        except OfficialStatusFetchError as exc:
            logger.warning(f"official_status_fetch_failed provider={provider_type.value}: {exc}")
            return self._statuses.get(provider_type)
        previous = self._statuses.get(provider_type)
        self._statuses[provider_type] = status
        if previous is None or previous.status != status.status:
            logger.info(f"official_status_changed provider={provider_type.value} status={status.status}")
        return status

    def start(self) -> None:
        if self._tasks:
            return
        for provider_type in self._sources:
            self._tasks.append(
                asyncio.create_task(
                    self._watch(provider_type), name=f"official-status-{provider_type.value}"
                )
            )
        logger.info(f"official_status_poller_started sources={len(self._tasks)} interval={self._interval}s")

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if tasks:
            logger.info("official_status_poller_stopped")

    async def _watch(self, provider_type: ProviderType) -> None:
        while True:
            try:
                await self.refresh_once(provider_type)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"official_status_refresh_crashed provider={provider_type.value}")
            await asyncio.sleep(self._interval)
