"""
后台轮询调度器

每个 tick：Idle → AcquireLease → (Leader: RunChecks → WriteHistory → Idle) | (Standby: Idle)

- 只有成功获取/续约租约的节点执行探测与写入
- 单个 provider 的失败只影响自己的结果；整个 tick 失败时记录日志，等待下一个正常间隔再试
- tick 之间除租约外不共享内存状态
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Literal

from status_monitor.core.config import settings
from status_monitor.core.exceptions import LeadershipLostError, StatusMonitorError
from status_monitor.core.logging import logger
from status_monitor.core.metrics import record_tick
from status_monitor.schemas import HistorySnapshot, ProviderConfig
from status_monitor.services.config_source import ConfigSource
from status_monitor.services.history.history_store import HistoryStore
from status_monitor.services.providers.batch import run_provider_checks
from status_monitor.services.providers.checker import ProviderChecker
from status_monitor.services.providers.pinger import EndpointPinger

from .leadership import LeaderLease

TickOutcome = Literal["leader", "standby", "failed"]


class PollerScheduler:
    def __init__(
        self,
        *,
        config_source: ConfigSource,
        lease: LeaderLease,
        history: HistoryStore,
        checker: ProviderChecker,
        pinger: EndpointPinger | None = None,
        interval_seconds: float | None = None,
        concurrency: int | None = None,
        sweep_interval_seconds: float | None = None,
        retention_days: int | None = None,
    ):
        self._config_source = config_source
        self._lease = lease
        self._history = history
        self._checker = checker
        self._pinger = pinger
        self._interval = interval_seconds or settings.CHECK_POLL_INTERVAL_SECONDS
        self._concurrency = concurrency or settings.CHECK_CONCURRENCY
        self._sweep_interval = sweep_interval_seconds or settings.HISTORY_SWEEP_INTERVAL_SECONDS
        self._retention_days = retention_days or settings.HISTORY_RETENTION_DAYS
        self._last_sweep_at: float | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def lease(self) -> LeaderLease:
        return self._lease

    @property
    def running(self) -> bool:
        return self._running

    # -------- 生命周期 --------
    def start(self) -> None:
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop(), name="check-poller")
        logger.info(
            f"poller_started node={self._lease.node_id} interval={self._interval}s "
            f"concurrency={self._concurrency}"
        )

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self._lease.release()
        logger.info(f"poller_stopped node={self._lease.node_id}")

    async def _poll_loop(self) -> None:
        while self._running:
            await self.tick()
            await asyncio.sleep(self._interval)

    # -------- 单次 tick --------
    async def tick(self) -> TickOutcome:
        try:
            configs = await self._config_source.list_active_configs()
            targets = [config for config in configs if not config.is_maintenance]

            if not await self._lease.try_acquire_or_renew():
                record_tick("standby")
                return "standby"

            await self.probe_and_store(targets)
            await self._maybe_sweep()
        except asyncio.CancelledError:
            raise
        except StatusMonitorError as exc:
            logger.error(f"poller_tick_failed node={self._lease.node_id}: {exc}")
            record_tick("failed")
            return "failed"
        except Exception:
            logger.exception(f"poller_tick_failed node={self._lease.node_id}")
            record_tick("failed")
            return "failed"

        record_tick("leader")
        return "leader"

    async def probe_and_store(self, targets: list[ProviderConfig]) -> HistorySnapshot:
        """
        执行一轮探测并整批写入；调用方需已持有租约

        探测期间租约可能到期（例如探测耗时超过租约），此时放弃写入。
        """
        results = await run_provider_checks(
            targets,
            checker=self._checker,
            pinger=self._pinger,
            concurrency=self._concurrency,
        )
        if not self._lease.is_leader:
            raise LeadershipLostError(
                f"lease expired during probe round, dropping {len(results)} results"
            )
        snapshot = await self._history.append(results, config_ids=[config.id for config in targets])
        logger.info(
            f"poller_round_written node={self._lease.node_id} results={len(results)} "
            f"failed={sum(1 for r in results if r.status.value == 'failed')}"
        )
        return snapshot

    async def refresh(self, targets: list[ProviderConfig]) -> HistorySnapshot:
        """
        按需刷新：leader 立即探测并写入，standby 只读取已持久化的历史
        """
        if await self._lease.try_acquire_or_renew():
            return await self.probe_and_store(targets)
        return await self._history.load([config.id for config in targets])

    async def _maybe_sweep(self) -> None:
        now = time.monotonic()
        if self._last_sweep_at is not None and now - self._last_sweep_at < self._sweep_interval:
            return
        self._last_sweep_at = now
        try:
            await self._history.sweep_expired(self._retention_days)
        except StatusMonitorError as exc:
            logger.warning(f"history_sweep_failed: {exc}")
