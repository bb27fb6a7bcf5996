"""
Prometheus 指标封装

目的：
- 记录每次探测的结果分布与耗时
- 记录轮询 tick 的结果与 leader 切换次数，便于告警侧判断是否存在脑裂或空转
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# 注册表便于单元测试重置
registry = CollectorRegistry()

CHECK_TOTAL = Counter(
    "provider_check_total",
    "探测次数",
    ["provider_type", "status"],
    registry=registry,
)
CHECK_LATENCY = Histogram(
    "provider_check_latency_seconds",
    "探测耗时（仅成功响应）",
    ["provider_type"],
    buckets=(0.5, 1, 2, 4, 6, 10, 15),
    registry=registry,
)
POLLER_TICK_TOTAL = Counter(
    "poller_tick_total",
    "轮询 tick 计数",
    ["outcome"],
    registry=registry,
)
LEADERSHIP_TRANSITIONS = Counter(
    "poller_leadership_transitions_total",
    "leader 身份切换次数",
    ["direction"],
    registry=registry,
)


def record_check(provider_type: str, status: str, latency_ms: int | None) -> None:
    CHECK_TOTAL.labels(provider_type=provider_type, status=status).inc()
    if latency_ms is not None and status in ("operational", "degraded"):
        CHECK_LATENCY.labels(provider_type=provider_type).observe(latency_ms / 1000.0)


def record_tick(outcome: str) -> None:
    POLLER_TICK_TOTAL.labels(outcome=outcome).inc()


def record_leadership_transition(direction: str) -> None:
    LEADERSHIP_TRANSITIONS.labels(direction=direction).inc()


def render_latest() -> bytes:
    return generate_latest(registry)
