"""
PollerScheduler 测试

- leader 节点探测并整批写入；维护模式与禁用配置不会被探测
- standby 节点从不写入历史
- 单个 provider 失败不影响整批；存储失败只让本次 tick 失败
"""
import asyncio

import httpx
import pytest

from status_monitor.core.exceptions import HistoryStoreUnavailableError
from status_monitor.schemas import HealthStatus
from status_monitor.services.config_source import ConfigSource
from status_monitor.services.history.history_store import HistoryStore
from status_monitor.services.poller.leadership import DatabaseLeaseBackend, LeaderLease
from status_monitor.services.poller.scheduler import PollerScheduler
from status_monitor.services.providers.checker import ProviderChecker

OPENAI_STREAM = b'data: {"choices": [{"delta": {"content": "ok"}}]}\n\ndata: [DONE]\n\n'


class SpyHistoryStore(HistoryStore):
    def __init__(self, *args, fail_append: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.append_calls = 0
        self.sweep_calls = 0
        self.fail_append = fail_append

    async def append(self, results, *, config_ids=None):
        self.append_calls += 1
        if self.fail_append:
            raise HistoryStoreUnavailableError("database is gone")
        return await super().append(results, config_ids=config_ids)

    async def sweep_expired(self, retention_days=None):
        self.sweep_calls += 1
        return await super().sweep_expired(retention_days)


def _default_handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "broken.example.com":
        return httpx.Response(503, json={"error": {"message": "service unavailable"}})
    return httpx.Response(200, content=OPENAI_STREAM)


def _build(session_factory, *, node_id="node-a", handler=_default_handler, history=None, lease_seconds=60):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    history = history or SpyHistoryStore(session_factory)
    lease = LeaderLease(DatabaseLeaseBackend(session_factory, "check_poller"), node_id, lease_seconds)
    scheduler = PollerScheduler(
        config_source=ConfigSource(session_factory),
        lease=lease,
        history=history,
        checker=ProviderChecker(client, timeout_seconds=5),
        interval_seconds=15,
        concurrency=3,
    )
    return scheduler, history, client


@pytest.mark.asyncio
async def test_leader_tick_probes_and_writes(session_factory, make_config):
    active = await make_config("OpenAI")
    maintenance = await make_config("Paused", is_maintenance=True)
    disabled = await make_config("Disabled", enabled=False)
    scheduler, history, client = _build(session_factory)

    assert await scheduler.tick() == "leader"

    snapshot = await history.load()
    assert set(snapshot) == {active.id}
    assert snapshot[active.id][0].status is HealthStatus.OPERATIONAL
    assert maintenance.id not in snapshot and disabled.id not in snapshot
    assert history.append_calls == 1
    assert history.sweep_calls == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_standby_never_appends(session_factory, make_config):
    await make_config("OpenAI")
    leader, leader_history, leader_client = _build(session_factory, node_id="node-a")
    standby, standby_history, standby_client = _build(session_factory, node_id="node-b")

    assert await leader.tick() == "leader"
    assert await standby.tick() == "standby"
    assert await standby.tick() == "standby"

    assert standby_history.append_calls == 0
    assert leader_history.append_calls == 1
    await leader_client.aclose()
    await standby_client.aclose()


@pytest.mark.asyncio
async def test_partial_failures_do_not_abort_tick(session_factory, make_config):
    healthy = await make_config("Healthy")
    broken = await make_config("Broken", endpoint="https://broken.example.com/v1/chat/completions")
    scheduler, history, client = _build(session_factory)

    assert await scheduler.tick() == "leader"

    snapshot = await history.load()
    assert snapshot[healthy.id][0].status is HealthStatus.OPERATIONAL
    assert snapshot[broken.id][0].status is HealthStatus.FAILED
    assert snapshot[broken.id][0].message == "service unavailable"
    await client.aclose()


@pytest.mark.asyncio
async def test_store_failure_fails_only_this_tick(session_factory, make_config):
    await make_config("OpenAI")
    history = SpyHistoryStore(session_factory, fail_append=True)
    scheduler, _, client = _build(session_factory, history=history)

    assert await scheduler.tick() == "failed"

    history.fail_append = False
    assert await scheduler.tick() == "leader"
    assert history.append_calls == 2
    await client.aclose()


@pytest.mark.asyncio
async def test_results_dropped_when_lease_expires_mid_round(session_factory, make_config):
    await make_config("Slow")

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.15)
        return httpx.Response(200, content=OPENAI_STREAM)

    scheduler, history, client = _build(session_factory, handler=slow_handler, lease_seconds=0.05)

    assert await scheduler.tick() == "failed"
    assert history.append_calls == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_sweep_runs_at_most_once_per_interval(session_factory, make_config):
    await make_config("OpenAI")
    scheduler, history, client = _build(session_factory)

    await scheduler.tick()
    await scheduler.tick()
    assert history.sweep_calls == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_refresh_on_standby_only_reads(session_factory, make_config):
    config = await make_config("OpenAI")
    leader, _, leader_client = _build(session_factory, node_id="node-a")
    standby, standby_history, standby_client = _build(session_factory, node_id="node-b")
    await leader.tick()

    snapshot = await standby.refresh([config])

    assert len(snapshot[config.id]) == 1
    assert standby_history.append_calls == 0
    await leader_client.aclose()
    await standby_client.aclose()


@pytest.mark.asyncio
async def test_start_and_stop_loop(session_factory, make_config):
    await make_config("OpenAI")
    scheduler, history, client = _build(session_factory)

    scheduler.start()
    for _ in range(50):
        if history.append_calls:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop()

    assert history.append_calls == 1
    assert scheduler.running is False
    assert scheduler.lease.is_leader is False
    await client.aclose()
