import httpx
import pytest

from status_monitor.core.config import Settings
from status_monitor.core.exceptions import ConfigurationError
from status_monitor.runtime import MonitorRuntime
from status_monitor.services.poller.leadership import RedisLeaseBackend


def _transport() -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200))


def test_poller_requires_node_id(session_factory):
    with pytest.raises(ConfigurationError):
        MonitorRuntime.build(
            session_factory=session_factory,
            transport=_transport(),
            config=Settings(_env_file=None, CHECK_NODE_ID=""),
        )


def test_redis_lease_backend_requires_cache(session_factory):
    with pytest.raises(ConfigurationError):
        MonitorRuntime.build(
            session_factory=session_factory,
            transport=_transport(),
            config=Settings(_env_file=None, CHECK_NODE_ID="node-1", LEADER_LEASE_BACKEND="redis"),
        )


@pytest.mark.asyncio
async def test_read_only_node_has_no_scheduler(session_factory):
    runtime = MonitorRuntime.build(
        session_factory=session_factory,
        transport=_transport(),
        config=Settings(
            _env_file=None,
            CHECK_POLLER_ENABLED=False,
            CHECK_NODE_ID=None,
            OFFICIAL_STATUS_ENABLED=False,
        ),
    )
    runtime.start()
    assert runtime.scheduler is None
    assert runtime.node_id is None
    assert runtime.is_leader is False
    await runtime.stop()


@pytest.mark.asyncio
async def test_redis_backend_wiring(session_factory, cache_service):
    runtime = MonitorRuntime.build(
        session_factory=session_factory,
        cache_service=cache_service,
        transport=_transport(),
        config=Settings(
            _env_file=None,
            CHECK_NODE_ID="node-1",
            LEADER_LEASE_BACKEND="redis",
            OFFICIAL_STATUS_ENABLED=False,
        ),
    )
    assert isinstance(runtime.lease._backend, RedisLeaseBackend)
    assert runtime.lease.node_id == "node-1"
    await runtime.http_client.aclose()
