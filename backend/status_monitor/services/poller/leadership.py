"""
Leader 租约管理

多节点部署时，每个节点都运行轮询循环，但同一时刻最多只有一个节点持有未过期的租约，
只有持有者才会执行探测并写入历史。租约记录是唯一跨节点共享的可变资源，
所有修改都通过后端提供的条件写入（CAS）完成。

后端：
- DatabaseLeaseBackend: 关系库单行 + 条件 UPDATE
- RedisLeaseBackend: Redis key + Lua 脚本（不存在或同一持有者时才写入）
"""

from __future__ import annotations

import enum
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from status_monitor.core.cache import CacheService
from status_monitor.core.exceptions import ConfigurationError, LeaseBackendError
from status_monitor.core.logging import logger
from status_monitor.core.metrics import record_leadership_transition
from status_monitor.repositories.lease_repository import LeaseRepository
from status_monitor.utils.time_utils import Datetime


class LeaseState(str, enum.Enum):
    UNCLAIMED = "unclaimed"
    HELD_BY_SELF = "held_by_self"
    HELD_BY_OTHER = "held_by_other"
    EXPIRED = "expired"


class LeaseBackend(Protocol):
    async def try_claim(self, node_id: str, lease_duration_ms: int) -> int | None:
        """成功返回 fencing token，被他人持有返回 None，后端异常抛 LeaseBackendError"""
        ...

    async def release(self, node_id: str) -> bool:
        ...


class DatabaseLeaseBackend:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], lease_key: str):
        self._session_factory = session_factory
        self._lease_key = lease_key

    async def try_claim(self, node_id: str, lease_duration_ms: int) -> int | None:
        now = Datetime.now()
        expires_at = now + timedelta(milliseconds=lease_duration_ms)
        try:
            async with self._session_factory() as session:
                return await LeaseRepository(session).try_claim(
                    self._lease_key, node_id, now=now, expires_at=expires_at
                )
        except SQLAlchemyError as exc:
            raise LeaseBackendError(f"lease claim failed: {exc}") from exc

    async def release(self, node_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                return await LeaseRepository(session).release(
                    self._lease_key, node_id, now=Datetime.now()
                )
        except SQLAlchemyError as exc:
            raise LeaseBackendError(f"lease release failed: {exc}") from exc


class RedisLeaseBackend:
    def __init__(self, cache: CacheService, lease_key: str):
        self._cache = cache
        self._lease_key = f"lease:{lease_key}"

    async def try_claim(self, node_id: str, lease_duration_ms: int) -> int | None:
        try:
            token = await self._cache.run_script(
                "lease_claim",
                [self._lease_key, f"{self._lease_key}:fencing"],
                [node_id, int(lease_duration_ms)],
            )
        except Exception as exc:
            raise LeaseBackendError(f"redis lease claim failed: {exc}") from exc
        token = int(token or 0)
        return token if token > 0 else None

    async def release(self, node_id: str) -> bool:
        try:
            result = await self._cache.run_script("lease_release", [self._lease_key], [node_id])
        except Exception as exc:
            raise LeaseBackendError(f"redis lease release failed: {exc}") from exc
        return bool(result)


TransitionListener = Callable[[bool], None]


class LeaderLease:
    """
    租约状态机：{Unclaimed, Held(by=self), Held(by=other), Expired}

    每个调度 tick 调用一次 try_acquire_or_renew；只有成功的 tick 才允许探测与写入。
    leader 身份变化时记录日志、指标并通知监听者（非致命）。
    """

    def __init__(
        self,
        backend: LeaseBackend,
        node_id: str,
        lease_duration_seconds: float,
    ):
        self._backend = backend
        self._node_id = node_id
        self._lease_duration_ms = int(lease_duration_seconds * 1000)
        self._state = LeaseState.UNCLAIMED
        self._is_leader = False
        self._local_expires_at = 0.0
        self._fencing_token: int | None = None
        self._listeners: list[TransitionListener] = []

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def lease_duration_ms(self) -> int:
        return self._lease_duration_ms

    @property
    def fencing_token(self) -> int | None:
        return self._fencing_token if self.is_leader else None

    @property
    def state(self) -> LeaseState:
        if self._state is LeaseState.HELD_BY_SELF and time.monotonic() >= self._local_expires_at:
            return LeaseState.EXPIRED
        return self._state

    @property
    def is_leader(self) -> bool:
        return self.state is LeaseState.HELD_BY_SELF

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    async def try_acquire_or_renew(
        self,
        node_id: str | None = None,
        lease_duration_ms: int | None = None,
    ) -> bool:
        node = node_id or self._node_id
        duration_ms = lease_duration_ms or self._lease_duration_ms
        # 以发起请求前的本地时间计算到期，保守估计，避免本地认为仍持有而远端已过期
        started = time.monotonic()
        try:
            token = await self._backend.try_claim(node, duration_ms)
        except LeaseBackendError as exc:
            logger.warning(f"poller_lease_backend_error node={node}: {exc}")
            token = None
            self._state = LeaseState.EXPIRED if self._is_leader else LeaseState.UNCLAIMED
        else:
            if token is not None:
                self._state = LeaseState.HELD_BY_SELF
                self._local_expires_at = started + duration_ms / 1000.0
                self._fencing_token = token
            else:
                self._state = LeaseState.HELD_BY_OTHER

        self._set_leader(token is not None)
        return token is not None

    async def release(self) -> None:
        if not self._is_leader:
            return
        try:
            await self._backend.release(self._node_id)
        except LeaseBackendError as exc:
            logger.warning(f"poller_lease_release_failed node={self._node_id}: {exc}")
        self._state = LeaseState.UNCLAIMED
        self._set_leader(False)

    def _set_leader(self, leader: bool) -> None:
        if leader == self._is_leader:
            return
        self._is_leader = leader
        if leader:
            logger.info(
                f"poller_leadership_acquired node={self._node_id} "
                f"token={self._fencing_token} lease_ms={self._lease_duration_ms}"
            )
            record_leadership_transition("acquired")
        else:
            logger.warning(f"poller_leadership_lost node={self._node_id} state={self._state.value}")
            record_leadership_transition("lost")
        for listener in list(self._listeners):
            try:
                listener(leader)
            except Exception as exc:
                logger.error(f"poller_leadership_listener_error: {exc}")


def build_lease_backend(
    kind: str,
    *,
    lease_key: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    cache: CacheService | None = None,
) -> LeaseBackend:
    if kind == "redis":
        if cache is None or not cache.enabled:
            raise ConfigurationError("LEADER_LEASE_BACKEND=redis requires REDIS_URL")
        return RedisLeaseBackend(cache, lease_key)
    if session_factory is None:
        raise ConfigurationError("database lease backend requires a session factory")
    return DatabaseLeaseBackend(session_factory, lease_key)
