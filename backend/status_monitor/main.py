"""
AI Status Monitor - FastAPI Application Entry Point

启动命令:
    uvicorn status_monitor.main:app --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from status_monitor.core import cache, settings, setup_logging
from status_monitor.core.database import init_db
from status_monitor.core.logging import logger
from status_monitor.runtime import MonitorRuntime

# 设置日志
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：初始化 Redis / 建表 / 启动两个后台轮询器"""
    logger.info(f"application_startup project={settings.PROJECT_NAME}")
    try:
        cache.init()
        await cache.preload_scripts()
    except Exception as exc:
        logger.warning(f"cache_init_failed: {exc}")

    try:
        await init_db()
    except Exception as exc:
        logger.error(f"database_init_failed: {exc}")

    runtime = MonitorRuntime.build(cache_service=cache)
    app.state.runtime = runtime
    runtime.start()

    yield

    await runtime.stop()
    app.state.runtime = None
    await cache.close()
    logger.info("application_shutdown")


def create_app(*, with_lifespan: bool = True) -> FastAPI:
    """创建 FastAPI 应用；测试中关闭 lifespan，直接注入 app.state.runtime"""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan if with_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    from status_monitor.api.metrics_route import router as metrics_router
    from status_monitor.api.v1 import dashboard_router

    app.include_router(dashboard_router, prefix=settings.API_V1_STR, tags=["Dashboard"])
    app.include_router(metrics_router, tags=["Metrics"])


# 创建应用实例
app = create_app()


def run():
    """脚本入口点"""
    import uvicorn

    uvicorn.run(
        "status_monitor.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
