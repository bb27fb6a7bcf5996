from __future__ import annotations

from sqlalchemy import select

from status_monitor.models import CheckConfig

from .base import BaseRepository


class CheckConfigRepository(BaseRepository[CheckConfig]):
    model = CheckConfig

    async def list_configs(self, *, enabled_only: bool = True) -> list[CheckConfig]:
        stmt = select(CheckConfig).order_by(CheckConfig.name.asc())
        if enabled_only:
            stmt = stmt.where(CheckConfig.enabled == True)  # noqa: E712
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
