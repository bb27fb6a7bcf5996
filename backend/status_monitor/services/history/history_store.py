"""
检测历史存储

- append: 整批写入 + 按条数裁剪，同一事务提交，读者只会看到写入前或写入后的完整状态
- load: 读取每个 provider 最近 N 条；存储不可用时降级为上一次成功读取的快照
- sweep_expired: 按天数保留的低频清理，与逐次写入的条数裁剪相互独立
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from status_monitor.core.config import settings
from status_monitor.core.exceptions import HistoryStoreUnavailableError
from status_monitor.core.logging import logger
from status_monitor.repositories import CheckHistoryRepository
from status_monitor.schemas import CheckResult, HealthStatus, HistorySnapshot, ProviderType
from status_monitor.services.providers.registry import default_endpoint_for
from status_monitor.utils.time_utils import Datetime

_SnapshotKey = tuple[str, ...] | None


class HistoryStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        limit_per_provider: int | None = None,
    ):
        self._session_factory = session_factory
        self._limit = limit_per_provider or settings.HISTORY_LIMIT_PER_PROVIDER
        self._last_snapshots: dict[_SnapshotKey, HistorySnapshot] = {}

    async def append(
        self,
        results: Iterable[CheckResult],
        *,
        config_ids: Sequence[str] | None = None,
    ) -> HistorySnapshot:
        """写入一批结果并返回相关 provider 的最新快照；写入失败时抛出 HistoryStoreUnavailableError"""
        rows = [
            {
                "config_id": result.id,
                "status": result.status.value,
                "latency_ms": result.latency_ms,
                "ping_latency_ms": result.ping_latency_ms,
                "checked_at": Datetime.ensure_utc(result.checked_at),
                "message": result.message,
            }
            for result in results
            # 维护模式的结果只在展示时合成，不落库
            if result.status is not HealthStatus.MAINTENANCE
        ]
        relevant_ids = list(config_ids) if config_ids is not None else sorted({row["config_id"] for row in rows})

        if rows:
            async with self._session_factory() as session:
                repo = CheckHistoryRepository(session)
                try:
                    inserted = await repo.insert_many(rows)
                    removed = await repo.prune(self._limit)
                    await session.commit()
                except SQLAlchemyError as exc:
                    await session.rollback()
                    logger.error(f"history_append_failed rows={len(rows)}: {exc}")
                    raise HistoryStoreUnavailableError(f"history append failed: {exc}") from exc
            logger.debug(f"history_appended inserted={inserted} pruned={removed}")

        return await self.load(relevant_ids)

    async def load(self, config_ids: Sequence[str] | None = None) -> HistorySnapshot:
        key: _SnapshotKey = tuple(sorted(config_ids)) if config_ids is not None else None
        if config_ids is not None and not config_ids:
            return {}
        try:
            async with self._session_factory() as session:
                rows = await CheckHistoryRepository(session).load_recent(self._limit, config_ids)
        except SQLAlchemyError as exc:
            cached = self._last_snapshots.get(key)
            if cached is not None:
                logger.warning(f"history_load_failed, serving cached snapshot: {exc}")
                return _copy_snapshot(cached)
            raise HistoryStoreUnavailableError(f"history load failed: {exc}") from exc

        snapshot = rows_to_snapshot(rows)
        self._last_snapshots[key] = snapshot
        return _copy_snapshot(snapshot)

    async def sweep_expired(self, retention_days: int | None = None) -> int:
        days = retention_days or settings.HISTORY_RETENTION_DAYS
        cutoff = Datetime.now() - timedelta(days=days)
        async with self._session_factory() as session:
            try:
                removed = await CheckHistoryRepository(session).delete_older_than(cutoff)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise HistoryStoreUnavailableError(f"history sweep failed: {exc}") from exc
        if removed:
            logger.info(f"history_swept removed={removed} retention_days={days}")
        return removed


def rows_to_snapshot(rows: Iterable[Any]) -> HistorySnapshot:
    snapshot: HistorySnapshot = {}
    for row in rows:
        provider_type = ProviderType.normalize(row.type)
        if provider_type is None:
            continue
        try:
            status = HealthStatus(row.status)
        except ValueError:
            continue
        config_id = str(row.config_id)
        snapshot.setdefault(config_id, []).append(
            CheckResult(
                id=config_id,
                name=row.name,
                type=provider_type,
                endpoint=row.endpoint or default_endpoint_for(provider_type),
                model=row.model,
                status=status,
                latency_ms=row.latency_ms,
                ping_latency_ms=row.ping_latency_ms,
                message=row.message or "",
                checked_at=Datetime.ensure_utc(row.checked_at),
                group_name=row.group_name,
            )
        )
    for items in snapshot.values():
        items.sort(key=lambda item: item.checked_at, reverse=True)
    return snapshot


def _copy_snapshot(snapshot: HistorySnapshot) -> HistorySnapshot:
    return {key: list(items) for key, items in snapshot.items()}
