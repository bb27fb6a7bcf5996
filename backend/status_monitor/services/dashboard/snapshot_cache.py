"""
进程内快照缓存

每个缓存 key（范围 + 轮询间隔 + provider 集合指纹）对应一个 CacheEntry：
- history: 最近一次刷新得到的快照
- last_ping_at: 最近一次成功刷新的时间（单调时钟）
- inflight: 正在进行的刷新任务

同一 key 同时最多只有一个刷新任务；并发调用者等待同一个任务并得到相同的结果或相同的异常。
距上次成功刷新不足最小间隔时直接返回缓存，不再触发探测。

缓存只属于当前进程，不跨节点同步；条目按需创建，随进程生命周期存在。
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from status_monitor.schemas import HistorySnapshot, RefreshMode

SnapshotLoader = Callable[[], Awaitable[HistorySnapshot]]

EMPTY_PROVIDER_KEY = "__empty__"


@dataclass
class CacheEntry:
    history: HistorySnapshot | None = None
    last_ping_at: float = 0.0
    inflight: asyncio.Future[HistorySnapshot] | None = None


def build_cache_key(scope: str, provider_ids: Iterable[str], poll_interval_ms: int) -> str:
    """形如 group:<name>:<interval>:<id1|id2>，provider 集合为空时用 __empty__"""
    ids = sorted(set(provider_ids))
    provider_key = "|".join(ids) if ids else EMPTY_PROVIDER_KEY
    return f"{scope}:{poll_interval_ms}:{provider_key}"


class SnapshotCache:
    def __init__(
        self,
        *,
        min_refresh_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._min_interval = min_refresh_interval_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def entry(self, key: str) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry()
        return entry

    def peek(self, key: str) -> HistorySnapshot | None:
        entry = self._entries.get(key)
        return entry.history if entry else None

    async def get(
        self,
        key: str,
        *,
        refresh_mode: RefreshMode,
        load: SnapshotLoader,
        refresh: SnapshotLoader,
    ) -> HistorySnapshot:
        """
        - always: 触发刷新（受最小间隔与单飞约束）
        - missing: 读取已持久化历史，为空时才刷新
        - never: 只读取已持久化历史
        """
        if refresh_mode == "always":
            return await self.refresh(key, refresh)

        history = await load()
        if refresh_mode == "missing" and not any(history.values()):
            return await self.refresh(key, refresh)
        return history

    async def refresh(self, key: str, refresh: SnapshotLoader) -> HistorySnapshot:
        entry = self.entry(key)
        if entry.history is not None and self._clock() - entry.last_ping_at < self._min_interval:
            return entry.history

        if entry.inflight is None:
            entry.inflight = asyncio.ensure_future(self._run(entry, refresh))
            entry.inflight.add_done_callback(_consume_exception)
        # shield：单个调用者被取消不影响其他等待者
        return await asyncio.shield(entry.inflight)

    async def _run(self, entry: CacheEntry, refresh: SnapshotLoader) -> HistorySnapshot:
        try:
            history = await refresh()
            entry.history = history
            entry.last_ping_at = self._clock()
            return history
        finally:
            entry.inflight = None


def _consume_exception(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()
