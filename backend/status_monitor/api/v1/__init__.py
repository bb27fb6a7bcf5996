from .dashboard_route import router as dashboard_router

__all__ = ["dashboard_router"]
