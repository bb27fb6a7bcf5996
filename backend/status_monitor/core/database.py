from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from status_monitor.core.config import settings

def build_engine(db_url: str | None = None, **overrides) -> AsyncEngine:
    """创建异步引擎（连接池参数仅在非 sqlite 场景启用）"""
    url = db_url or settings.DATABASE_URL
    engine_kwargs = {
        "echo": settings.DEBUG,
        "future": True,
        "pool_pre_ping": True,
    }
    if not url.startswith("sqlite"):
        engine_kwargs.update(pool_size=10, max_overflow=5)
    engine_kwargs.update(overrides)
    return create_async_engine(url, **engine_kwargs)

def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

# 创建异步引擎与 Session 工厂
engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """按模型元数据建表（不含迁移）"""
    from status_monitor.models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
