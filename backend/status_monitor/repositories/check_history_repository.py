from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from status_monitor.core.logging import logger
from status_monitor.models import CheckConfig, CheckHistory

from .base import BaseRepository

_HISTORY_COLUMNS = (
    CheckHistory.config_id,
    CheckHistory.status,
    CheckHistory.latency_ms,
    CheckHistory.ping_latency_ms,
    CheckHistory.checked_at,
    CheckHistory.message,
)
_CONFIG_COLUMNS = (
    CheckConfig.name,
    CheckConfig.type,
    CheckConfig.model,
    CheckConfig.endpoint,
    CheckConfig.group_name,
)


class CheckHistoryRepository(BaseRepository[CheckHistory]):
    """
    检测历史仓库

    读取与裁剪优先走窗口函数（row_number over partition by config_id）；
    方言不支持时降级为普通查询 + Python 侧裁剪。
    """

    model = CheckHistory

    # None 表示尚未探测；False 后不再尝试窗口函数
    _window_functions_supported: bool | None = None

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def insert_many(self, rows: Iterable[dict[str, Any]]) -> int:
        payload = [
            {**row, "config_id": uuid.UUID(str(row["config_id"]))}
            for row in rows
        ]
        if not payload:
            return 0
        await self.add_all(payload)
        return len(payload)

    async def load_recent(
        self,
        limit_per_config: int,
        config_ids: Sequence[str] | None = None,
    ) -> list[Any]:
        """每个配置取最近 limit_per_config 条，附带配置的展示字段"""
        if type(self)._window_functions_supported is not False:
            try:
                rows = await self._load_recent_ranked(limit_per_config, config_ids)
                type(self)._window_functions_supported = True
                return rows
            except (OperationalError, DBAPIError) as exc:
                if type(self)._window_functions_supported:
                    raise
                logger.warning(f"history_window_query_unsupported, falling back: {exc}")
                await self.session.rollback()
                # 降级查询也失败说明是存储本身不可用，原样抛出且不记录为「不支持」
                rows = await self._load_recent_fallback(limit_per_config, config_ids)
                type(self)._window_functions_supported = False
                return rows
        return await self._load_recent_fallback(limit_per_config, config_ids)

    async def prune(self, limit_per_config: int) -> int:
        """删除超出每配置条数上限的旧记录，返回删除条数"""
        if type(self)._window_functions_supported is not False:
            try:
                return await self._prune_ranked(limit_per_config)
            except (OperationalError, DBAPIError) as exc:
                if type(self)._window_functions_supported:
                    raise
                logger.warning(f"history_window_prune_unsupported, falling back: {exc}")
                removed = await self._prune_fallback(limit_per_config)
                type(self)._window_functions_supported = False
                return removed
        return await self._prune_fallback(limit_per_config)

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(CheckHistory).where(CheckHistory.checked_at < cutoff)
        )
        return int(result.rowcount or 0)

    # -------- 窗口函数路径 --------
    def _ranked_subquery(self, config_ids: Sequence[str] | None = None):
        rn = func.row_number().over(
            partition_by=CheckHistory.config_id,
            order_by=CheckHistory.checked_at.desc(),
        ).label("rn")
        stmt = select(CheckHistory.id.label("history_id"), *_HISTORY_COLUMNS, rn)
        if config_ids is not None:
            stmt = stmt.where(CheckHistory.config_id.in_(_as_uuids(config_ids)))
        return stmt.subquery("ranked")

    async def _load_recent_ranked(
        self,
        limit_per_config: int,
        config_ids: Sequence[str] | None,
    ) -> list[Any]:
        ranked = self._ranked_subquery(config_ids)
        stmt = (
            select(
                ranked.c.config_id,
                ranked.c.status,
                ranked.c.latency_ms,
                ranked.c.ping_latency_ms,
                ranked.c.checked_at,
                ranked.c.message,
                *_CONFIG_COLUMNS,
            )
            .join(CheckConfig, CheckConfig.id == ranked.c.config_id)
            .where(ranked.c.rn <= limit_per_config)
            .order_by(CheckConfig.name.asc(), ranked.c.checked_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.all())

    async def _prune_ranked(self, limit_per_config: int) -> int:
        ranked = self._ranked_subquery()
        stale_ids = select(ranked.c.history_id).where(ranked.c.rn > limit_per_config)
        result = await self.session.execute(
            delete(CheckHistory).where(CheckHistory.id.in_(stale_ids))
        )
        return int(result.rowcount or 0)

    # -------- 降级路径 --------
    async def _load_recent_fallback(
        self,
        limit_per_config: int,
        config_ids: Sequence[str] | None,
    ) -> list[Any]:
        stmt = (
            select(*_HISTORY_COLUMNS, *_CONFIG_COLUMNS)
            .join(CheckConfig, CheckConfig.id == CheckHistory.config_id)
            .order_by(CheckConfig.name.asc(), CheckHistory.checked_at.desc())
        )
        if config_ids is not None:
            stmt = stmt.where(CheckHistory.config_id.in_(_as_uuids(config_ids)))
        result = await self.session.execute(stmt)

        kept: list[Any] = []
        counts: dict[Any, int] = {}
        for row in result.all():
            seen = counts.get(row.config_id, 0)
            if seen >= limit_per_config:
                continue
            counts[row.config_id] = seen + 1
            kept.append(row)
        return kept

    async def _prune_fallback(self, limit_per_config: int) -> int:
        config_ids = (
            await self.session.execute(select(CheckHistory.config_id).distinct())
        ).scalars().all()
        removed = 0
        for config_id in config_ids:
            stale_ids = (
                select(CheckHistory.id)
                .where(CheckHistory.config_id == config_id)
                .order_by(CheckHistory.checked_at.desc())
                .offset(limit_per_config)
            )
            stale = (await self.session.execute(stale_ids)).scalars().all()
            if stale:
                result = await self.session.execute(
                    delete(CheckHistory).where(CheckHistory.id.in_(stale))
                )
                removed += int(result.rowcount or 0)
        return removed


def _as_uuids(values: Sequence[str]) -> list[uuid.UUID]:
    out: list[uuid.UUID] = []
    for value in values:
        try:
            out.append(uuid.UUID(str(value)))
        except ValueError:
            continue
    return out
