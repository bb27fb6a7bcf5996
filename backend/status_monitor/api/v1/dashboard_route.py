from fastapi import APIRouter, Depends, HTTPException, Query, status

from status_monitor.api.deps import get_runtime
from status_monitor.runtime import MonitorRuntime
from status_monitor.schemas import DashboardData, HealthResponse, RefreshMode

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardData)
async def get_dashboard(
    refresh: RefreshMode = Query("missing"),
    runtime: MonitorRuntime = Depends(get_runtime),
):
    data = await runtime.dashboard.load_dashboard_data(refresh)
    if data is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="dashboard unavailable")
    return data


@router.get("/groups", response_model=list[str])
async def list_groups(runtime: MonitorRuntime = Depends(get_runtime)):
    return await runtime.dashboard.get_available_groups()


@router.get("/groups/{group_name}", response_model=DashboardData)
async def get_group_dashboard(
    group_name: str,
    refresh: RefreshMode = Query("missing"),
    runtime: MonitorRuntime = Depends(get_runtime),
):
    data = await runtime.dashboard.load_group_dashboard_data(group_name, refresh)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="group not found")
    return data


@router.get("/health", response_model=HealthResponse)
async def get_health(runtime: MonitorRuntime = Depends(get_runtime)):
    return HealthResponse(
        node_id=runtime.node_id,
        leader=runtime.is_leader,
        poller_enabled=runtime.scheduler is not None,
        official_status_enabled=runtime.official_status is not None,
    )
