"""
运行时装配

进程启动时构造一次，持有所有长生命周期对象（HTTP 客户端、租约、快照缓存、两个后台轮询器），
通过引用传给 API 层；关闭时按相反顺序停止。
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from status_monitor.core.cache import CacheService
from status_monitor.core.config import Settings, settings
from status_monitor.core.exceptions import ConfigurationError
from status_monitor.core.http_client import create_async_http_client
from status_monitor.core.logging import logger
from status_monitor.services.config_source import ConfigSource
from status_monitor.services.dashboard.dashboard_service import DashboardService
from status_monitor.services.dashboard.snapshot_cache import SnapshotCache
from status_monitor.services.history.history_store import HistoryStore
from status_monitor.services.official_status.poller import OfficialStatusPoller
from status_monitor.services.poller.leadership import LeaderLease, build_lease_backend
from status_monitor.services.poller.scheduler import PollerScheduler
from status_monitor.services.providers.checker import ProviderChecker
from status_monitor.services.providers.pinger import EndpointPinger


@dataclass
class MonitorRuntime:
    config: Settings
    http_client: httpx.AsyncClient
    config_source: ConfigSource
    history: HistoryStore
    checker: ProviderChecker
    pinger: EndpointPinger
    snapshot_cache: SnapshotCache
    dashboard: DashboardService
    lease: LeaderLease | None = None
    scheduler: PollerScheduler | None = None
    official_status: OfficialStatusPoller | None = None

    @classmethod
    def build(
        cls,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        cache_service: CacheService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: Settings | None = None,
    ) -> MonitorRuntime:
        cfg = config or settings
        if cfg.CHECK_POLLER_ENABLED and not cfg.CHECK_NODE_ID:
            raise ConfigurationError("CHECK_NODE_ID is required when CHECK_POLLER_ENABLED is true")

        if session_factory is None:
            from status_monitor.core.database import AsyncSessionLocal

            session_factory = AsyncSessionLocal

        http_client = create_async_http_client(
            timeout=httpx.Timeout(cfg.CHECK_TIMEOUT_SECONDS, connect=min(10.0, cfg.CHECK_TIMEOUT_SECONDS)),
            transport=transport,
        )
        config_source = ConfigSource(session_factory)
        history = HistoryStore(session_factory, limit_per_provider=cfg.HISTORY_LIMIT_PER_PROVIDER)
        checker = ProviderChecker(
            http_client,
            timeout_seconds=cfg.CHECK_TIMEOUT_SECONDS,
            degraded_threshold_ms=cfg.CHECK_DEGRADED_THRESHOLD_MS,
        )
        pinger = EndpointPinger(http_client, timeout_seconds=cfg.PING_TIMEOUT_SECONDS)

        lease: LeaderLease | None = None
        scheduler: PollerScheduler | None = None
        if cfg.CHECK_POLLER_ENABLED:
            backend = build_lease_backend(
                cfg.LEADER_LEASE_BACKEND,
                lease_key=cfg.LEADER_LEASE_KEY,
                session_factory=session_factory,
                cache=cache_service,
            )
            lease = LeaderLease(backend, cfg.CHECK_NODE_ID, cfg.lease_duration_seconds)
            scheduler = PollerScheduler(
                config_source=config_source,
                lease=lease,
                history=history,
                checker=checker,
                pinger=pinger,
                interval_seconds=cfg.CHECK_POLL_INTERVAL_SECONDS,
                concurrency=cfg.CHECK_CONCURRENCY,
                sweep_interval_seconds=cfg.HISTORY_SWEEP_INTERVAL_SECONDS,
                retention_days=cfg.HISTORY_RETENTION_DAYS,
            )

        official_status = (
            OfficialStatusPoller(
                http_client,
                interval_seconds=cfg.OFFICIAL_STATUS_CHECK_INTERVAL_SECONDS,
                timeout_seconds=cfg.OFFICIAL_STATUS_TIMEOUT_SECONDS,
            )
            if cfg.OFFICIAL_STATUS_ENABLED
            else None
        )

        snapshot_cache = SnapshotCache(min_refresh_interval_seconds=cfg.CHECK_POLL_INTERVAL_SECONDS)
        dashboard = DashboardService(
            config_source=config_source,
            history=history,
            cache=snapshot_cache,
            refresher=scheduler.refresh if scheduler else None,
            official_status=official_status,
            poll_interval_ms=cfg.poll_interval_ms,
            poll_interval_label=cfg.poll_interval_label,
        )

        return cls(
            config=cfg,
            http_client=http_client,
            config_source=config_source,
            history=history,
            checker=checker,
            pinger=pinger,
            snapshot_cache=snapshot_cache,
            dashboard=dashboard,
            lease=lease,
            scheduler=scheduler,
            official_status=official_status,
        )

    @property
    def node_id(self) -> str | None:
        return self.lease.node_id if self.lease else None

    @property
    def is_leader(self) -> bool:
        return bool(self.lease and self.lease.is_leader)

    def start(self) -> None:
        if self.official_status is not None:
            self.official_status.start()
        if self.scheduler is not None:
            self.scheduler.start()
        logger.info(
            f"monitor_runtime_started node={self.node_id} "
            f"poller={self.scheduler is not None} official_status={self.official_status is not None}"
        )

    async def stop(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        if self.official_status is not None:
            await self.official_status.stop()
        await self.http_client.aclose()
        logger.info(f"monitor_runtime_stopped node={self.node_id}")
