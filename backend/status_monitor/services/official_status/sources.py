"""
官方状态页数据源

OpenAI 与 Anthropic 都托管在 Statuspage.io 上，统一读取 /api/v2/summary.json：
- status.indicator: none / minor / major / critical / maintenance
- components: 各组件状态，非 operational 的组件名作为受影响组件
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from status_monitor.schemas import OfficialStatus, ProviderType
from status_monitor.utils.time_utils import Datetime

_INDICATOR_STATUS = {
    "none": "operational",
    "minor": "degraded",
    "major": "down",
    "critical": "down",
    "maintenance": "maintenance",
}


class OfficialStatusFetchError(Exception):
    pass


class StatuspageSource:
    def __init__(self, provider_type: ProviderType, summary_url: str):
        self.provider_type = provider_type
        self.summary_url = summary_url

    async def fetch(self, client: httpx.AsyncClient, *, timeout: float | None = None) -> OfficialStatus:
        try:
            response = await client.get(self.summary_url, timeout=timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise OfficialStatusFetchError(f"{self.provider_type.value}: {exc}") from exc
        if not isinstance(payload, dict):
            raise OfficialStatusFetchError(f"{self.provider_type.value}: unexpected payload")
        try:
            return parse_statuspage_summary(payload)
        except (AttributeError, TypeError, ValueError, ValidationError) as exc:
            raise OfficialStatusFetchError(f"{self.provider_type.value}: malformed summary: {exc}") from exc


def parse_statuspage_summary(payload: dict[str, Any]) -> OfficialStatus:
    status_block = payload.get("status") or {}
    indicator = str(status_block.get("indicator") or "").lower()
    description = status_block.get("description") or ""

    affected: list[str] = []
    for component in payload.get("components") or []:
        if not isinstance(component, dict) or component.get("group"):
            continue
        if component.get("status") not in (None, "operational") and component.get("name"):
            affected.append(component["name"])

    status = _INDICATOR_STATUS.get(indicator, "unknown")
    if status == "operational" and any(
        isinstance(c, dict) and c.get("status") == "under_maintenance"
        for c in payload.get("components") or []
    ):
        status = "maintenance"

    return OfficialStatus(
        status=status,
        message=description or status,
        checked_at=Datetime.now(),
        affected_components=affected,
    )


DEFAULT_SOURCES: dict[ProviderType, StatuspageSource] = {
    ProviderType.OPENAI: StatuspageSource(
        ProviderType.OPENAI, "https://status.openai.com/api/v2/summary.json"
    ),
    ProviderType.ANTHROPIC: StatuspageSource(
        ProviderType.ANTHROPIC, "https://status.anthropic.com/api/v2/summary.json"
    ),
}
