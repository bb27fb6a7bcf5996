from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from status_monitor.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """通用异步 Repository 基类

    仓库以 `Repo(session)` 的形式初始化，通过子类的 `model` 属性自动注入。
    事务边界由调用方（存储服务）控制，仓库方法本身不提交。
    """

    model: type[ModelType]  # 子类应覆盖

    def __init__(
        self,
        session: AsyncSession,
        model: type[ModelType] | None = None,
    ):
        self.session = session
        self.model = model or getattr(self, "model", None)
        if self.model is None:
            raise ValueError("model must be provided for BaseRepository")

    async def add_all(self, rows: list[dict[str, Any]]) -> list[ModelType]:
        objs = [self.model(**row) for row in rows]
        self.session.add_all(objs)
        await self.session.flush()
        return objs
