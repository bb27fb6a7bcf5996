from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from .base import BaseSchema, FrozenSchema

RefreshMode = Literal["always", "missing", "never"]

# 未分组配置在分组列表中的哨兵 key
UNGROUPED_KEY = "__ungrouped__"
UNGROUPED_DISPLAY_NAME = "未分组"


class ProviderType(str, enum.Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"

    @classmethod
    def normalize(cls, value: str | None) -> ProviderType | None:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class HealthStatus(str, enum.Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    FAILED = "failed"
    MAINTENANCE = "maintenance"


class ProviderConfig(FrozenSchema):
    """探测所需的配置快照（核心只读）"""

    id: str
    name: str
    type: ProviderType
    model: str
    endpoint: str | None = None
    api_key: str = Field(repr=False)
    request_headers: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    group_name: str | None = None
    enabled: bool = True
    is_maintenance: bool = False

    @classmethod
    def from_model(cls, row: Any) -> ProviderConfig:
        return cls(
            id=str(row.id),
            name=row.name,
            type=ProviderType.normalize(row.type) or row.type,
            model=row.model,
            endpoint=row.endpoint or None,
            api_key=row.api_key,
            request_headers=dict(row.request_headers or {}),
            metadata=dict(row.meta or {}),
            group_name=row.group_name or None,
            enabled=bool(row.enabled),
            is_maintenance=bool(row.is_maintenance),
        )


class OfficialStatus(FrozenSchema):
    status: Literal["operational", "degraded", "down", "maintenance", "unknown"]
    message: str
    checked_at: datetime = Field(alias="checkedAt")
    affected_components: list[str] = Field(default_factory=list, alias="affectedComponents")


class CheckResult(FrozenSchema):
    """单次探测结果，创建后不可修改"""

    id: str
    name: str
    type: ProviderType
    endpoint: str
    model: str
    status: HealthStatus
    latency_ms: int | None = Field(None, alias="latencyMs")
    ping_latency_ms: int | None = Field(None, alias="pingLatencyMs")
    message: str = ""
    checked_at: datetime = Field(alias="checkedAt")
    group_name: str | None = Field(None, alias="groupName")
    # 仅在组装时间线时附加到 latest，不落库
    official_status: OfficialStatus | None = Field(None, alias="officialStatus")


# provider id -> 结果列表（新的在前）
HistorySnapshot = dict[str, list[CheckResult]]


class ProviderTimeline(BaseSchema):
    id: str
    items: list[CheckResult]
    latest: CheckResult


class DashboardData(BaseSchema):
    group_name: str | None = Field(None, alias="groupName")
    display_name: str | None = Field(None, alias="displayName")
    provider_timelines: list[ProviderTimeline] = Field(default_factory=list, alias="providerTimelines")
    last_updated: datetime | None = Field(None, alias="lastUpdated")
    total: int = 0
    poll_interval_label: str = Field(alias="pollIntervalLabel")
    poll_interval_ms: int = Field(alias="pollIntervalMs")
    generated_at: int = Field(alias="generatedAt")
    groups: list[str] | None = None


class HealthResponse(BaseSchema):
    node_id: str | None = Field(None, alias="nodeId")
    leader: bool = False
    poller_enabled: bool = Field(False, alias="pollerEnabled")
    official_status_enabled: bool = Field(False, alias="officialStatusEnabled")
