"""
Dashboard 聚合

读取配置 → 按刷新模式取得历史快照（经快照缓存单飞） → 合并官方状态 → 组装时间线。
维护模式的配置不探测、不读历史，只生成 items=[] 的虚拟时间线。
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

from status_monitor.core.config import settings
from status_monitor.core.exceptions import ConfigSourceUnavailableError, StatusMonitorError
from status_monitor.core.logging import logger
from status_monitor.schemas import (
    UNGROUPED_DISPLAY_NAME,
    UNGROUPED_KEY,
    CheckResult,
    DashboardData,
    HealthStatus,
    HistorySnapshot,
    ProviderConfig,
    ProviderTimeline,
    RefreshMode,
)
from status_monitor.services.config_source import ConfigSource
from status_monitor.services.history.history_store import HistoryStore
from status_monitor.services.official_status.poller import OfficialStatusPoller
from status_monitor.services.providers.registry import default_endpoint_for
from status_monitor.utils.time_utils import Datetime

from .snapshot_cache import SnapshotCache, build_cache_key

MAINTENANCE_MESSAGE = "配置处于维护模式"
GLOBAL_SCOPE = "global"

Refresher = Callable[[list[ProviderConfig]], Awaitable[HistorySnapshot]]


class DashboardService:
    def __init__(
        self,
        *,
        config_source: ConfigSource,
        history: HistoryStore,
        cache: SnapshotCache,
        refresher: Refresher | None = None,
        official_status: OfficialStatusPoller | None = None,
        poll_interval_ms: int | None = None,
        poll_interval_label: str | None = None,
    ):
        self._config_source = config_source
        self._history = history
        self._cache = cache
        # 未启用轮询（无租约）的节点只读历史，不触发探测
        self._refresher = refresher
        self._official_status = official_status
        self._poll_interval_ms = poll_interval_ms or settings.poll_interval_ms
        self._poll_interval_label = poll_interval_label or settings.poll_interval_label

    async def load_dashboard_data(self, refresh_mode: RefreshMode = "missing") -> DashboardData | None:
        configs = await self._list_configs()
        if configs is None:
            return None
        data = await self._build(GLOBAL_SCOPE, configs, refresh_mode)
        return data.model_copy(update={"groups": _group_keys(configs)})

    async def load_group_dashboard_data(
        self,
        group_key: str,
        refresh_mode: RefreshMode = "missing",
    ) -> DashboardData | None:
        """分组不存在（没有任何配置）时返回 None"""
        configs = await self._list_configs()
        if configs is None:
            return None

        ungrouped = group_key == UNGROUPED_KEY
        group_configs = [
            config
            for config in configs
            if (config.group_name is None if ungrouped else config.group_name == group_key)
        ]
        if not group_configs:
            return None

        data = await self._build(f"group:{group_key}", group_configs, refresh_mode)
        return data.model_copy(
            update={
                "group_name": group_key,
                "display_name": UNGROUPED_DISPLAY_NAME if ungrouped else group_key,
            }
        )

    async def get_available_groups(self) -> list[str]:
        configs = await self._list_configs()
        return _group_keys(configs or [])

    async def _list_configs(self) -> list[ProviderConfig] | None:
        try:
            return await self._config_source.list_active_configs()
        except ConfigSourceUnavailableError as exc:
            logger.error(f"dashboard_config_unavailable: {exc}")
            return None

    async def _build(
        self,
        scope: str,
        configs: Sequence[ProviderConfig],
        refresh_mode: RefreshMode,
    ) -> DashboardData:
        active = [config for config in configs if not config.is_maintenance]
        maintenance = [config for config in configs if config.is_maintenance]

        history = await self._resolve_history(scope, active, refresh_mode)

        timelines: list[ProviderTimeline] = []
        for config in active:
            items = sorted(history.get(config.id, []), key=lambda item: item.checked_at, reverse=True)
            if not items:
                continue
            timelines.append(
                ProviderTimeline(id=config.id, items=items, latest=self._with_official(items[0]))
            )

        now = Datetime.now()
        for config in maintenance:
            latest = CheckResult(
                id=config.id,
                name=config.name,
                type=config.type,
                endpoint=config.endpoint or default_endpoint_for(config.type),
                model=config.model,
                status=HealthStatus.MAINTENANCE,
                message=MAINTENANCE_MESSAGE,
                checked_at=now,
                group_name=config.group_name,
            )
            timelines.append(ProviderTimeline(id=config.id, items=[], latest=self._with_official(latest)))

        timelines.sort(key=lambda timeline: timeline.latest.name)
        checked = [item.checked_at for timeline in timelines for item in timeline.items]

        return DashboardData(
            provider_timelines=timelines,
            last_updated=max(checked) if checked else None,
            total=len(timelines),
            poll_interval_label=self._poll_interval_label,
            poll_interval_ms=self._poll_interval_ms,
            generated_at=Datetime.epoch_ms(now),
        )

    async def _resolve_history(
        self,
        scope: str,
        active: list[ProviderConfig],
        refresh_mode: RefreshMode,
    ) -> HistorySnapshot:
        if not active:
            return {}
        ids = [config.id for config in active]
        key = build_cache_key(scope, ids, self._poll_interval_ms)

        async def _load() -> HistorySnapshot:
            return await self._history.load(ids)

        async def _refresh() -> HistorySnapshot:
            if self._refresher is None:
                return await _load()
            return await self._refresher(active)

        try:
            history = await self._cache.get(key, refresh_mode=refresh_mode, load=_load, refresh=_refresh)
        except StatusMonitorError as exc:
            cached = self._cache.peek(key)
            logger.warning(f"dashboard_history_unavailable scope={scope} cached={cached is not None}: {exc}")
            history = cached or {}

        allowed = set(ids)
        return {config_id: items for config_id, items in history.items() if config_id in allowed}

    def _with_official(self, result: CheckResult) -> CheckResult:
        if self._official_status is None:
            return result
        official = self._official_status.get_official_status(result.type)
        if official is None:
            return result
        return result.model_copy(update={"official_status": official})


def _group_keys(configs: Sequence[ProviderConfig]) -> list[str]:
    groups = {config.group_name for config in configs if config.group_name}
    if any(not config.group_name for config in configs):
        groups.add(UNGROUPED_KEY)
    return sorted(groups)
