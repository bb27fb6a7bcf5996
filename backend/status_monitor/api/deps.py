from fastapi import HTTPException, Request, status

from status_monitor.runtime import MonitorRuntime


def get_runtime(request: Request) -> MonitorRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="monitor not ready")
    return runtime
