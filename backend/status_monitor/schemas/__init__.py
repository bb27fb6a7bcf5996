from .check import (
    UNGROUPED_DISPLAY_NAME,
    UNGROUPED_KEY,
    CheckResult,
    DashboardData,
    HealthResponse,
    HealthStatus,
    HistorySnapshot,
    OfficialStatus,
    ProviderConfig,
    ProviderTimeline,
    ProviderType,
    RefreshMode,
)

__all__ = [
    "UNGROUPED_DISPLAY_NAME",
    "UNGROUPED_KEY",
    "CheckResult",
    "DashboardData",
    "HealthResponse",
    "HealthStatus",
    "HistorySnapshot",
    "OfficialStatus",
    "ProviderConfig",
    "ProviderTimeline",
    "ProviderType",
    "RefreshMode",
]
