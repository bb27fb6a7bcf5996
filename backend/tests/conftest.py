"""
测试全局配置

- 使用内存 SQLite（aiosqlite + StaticPool），每个测试独立建表
- Redis 统一使用内存 DummyRedis，覆盖租约 Lua 脚本的语义
- 所有出站 HTTP 通过 httpx.MockTransport 注入
"""
from __future__ import annotations

import os
import time
import uuid
from typing import Any

# 必须在导入 status_monitor 之前设置，settings 在导入时读取环境变量
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("LOG_ASYNC", "false")
os.environ.setdefault("CHECK_NODE_ID", "test-node")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from status_monitor.core.cache import CacheService
from status_monitor.models import Base, CheckConfig
from status_monitor.repositories.check_history_repository import CheckHistoryRepository
from status_monitor.schemas import ProviderConfig


class DummyRedis:
    """
    轻量内存 Redis 替身：
    - get/set/delete/incr 与 PX 过期
    - eval/evalsha 只识别租约的 claim / release 两个脚本
    """

    def __init__(self):
        self.store: dict[str, Any] = {}
        self.expires_at: dict[str, float] = {}
        self.scripts: dict[str, str] = {}

    def _expire_if_needed(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self.store.pop(key, None)
            self.expires_at.pop(key, None)

    async def get(self, key: str):
        self._expire_if_needed(key)
        return self.store.get(key)

    async def set(self, key: str, value, ex=None, px=None, nx: bool | None = None):
        self._expire_if_needed(key)
        if nx and key in self.store:
            return False
        self.store[key] = value
        if px is not None:
            self.expires_at[key] = time.monotonic() + px / 1000.0
        elif ex is not None:
            self.expires_at[key] = time.monotonic() + ex
        else:
            self.expires_at.pop(key, None)
        return True

    async def delete(self, *keys):
        removed = 0
        for k in keys:
            self._expire_if_needed(k)
            removed += 1 if self.store.pop(k, None) is not None else 0
            self.expires_at.pop(k, None)
        return removed

    async def incr(self, key: str, amount: int = 1):
        new_val = int(self.store.get(key, 0)) + amount
        self.store[key] = new_val
        return new_val

    async def script_load(self, script: str):
        sha = f"sha:{len(self.scripts) + 1}"
        self.scripts[sha] = script
        return sha

    async def evalsha(self, sha, numkeys, *keys_and_args):
        return await self.eval(self.scripts[sha], numkeys, *keys_and_args)

    async def eval(self, script, numkeys, *keys_and_args):
        keys = list(keys_and_args[:numkeys])
        args = list(keys_and_args[numkeys:])
        if "INCR" in script:
            return await self._lease_claim(keys, args)
        if "DEL" in script:
            holder = await self.get(keys[0])
            if holder == args[0]:
                return await self.delete(keys[0])
            return 0
        return None

    async def _lease_claim(self, keys: list[str], args: list):
        lease_key, fencing_key = keys
        node_id, ttl_ms = str(args[0]), int(args[1])
        holder = await self.get(lease_key)
        if holder is not None and holder != node_id:
            return 0
        await self.set(lease_key, node_id, px=ttl_ms)
        if holder is None or fencing_key not in self.store:
            return await self.incr(fencing_key)
        return int(self.store[fencing_key])

    async def aclose(self):
        return None


@pytest.fixture(autouse=True)
def _reset_window_function_probe():
    CheckHistoryRepository._window_functions_supported = None
    yield
    CheckHistoryRepository._window_functions_supported = None


@pytest.fixture
def dummy_redis() -> DummyRedis:
    return DummyRedis()


@pytest.fixture
def cache_service(dummy_redis) -> CacheService:
    service = CacheService()
    service._redis = dummy_redis
    return service


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def make_config(session_factory):
    """写入一条 CheckConfig 并返回对应的 ProviderConfig"""

    async def _make(
        name: str = "OpenAI",
        *,
        type: str = "openai",
        model: str = "gpt-4o-mini",
        endpoint: str | None = "https://api.example.com/v1/chat/completions",
        group_name: str | None = None,
        enabled: bool = True,
        is_maintenance: bool = False,
        request_headers: dict[str, str] | None = None,
    ) -> ProviderConfig:
        row = CheckConfig(
            id=uuid.uuid4(),
            name=name,
            type=type,
            model=model,
            endpoint=endpoint,
            api_key="sk-test-key",
            enabled=enabled,
            is_maintenance=is_maintenance,
            group_name=group_name,
            request_headers=request_headers or {},
            meta={},
        )
        async with session_factory() as session:
            session.add(row)
            await session.commit()
        return ProviderConfig.from_model(row)

    return _make
