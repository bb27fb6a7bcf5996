from __future__ import annotations

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from status_monitor.core.exceptions import ConfigSourceUnavailableError
from status_monitor.core.logging import logger
from status_monitor.repositories import CheckConfigRepository
from status_monitor.schemas import ProviderConfig, ProviderType


class ConfigSource:
    """读取启用中的探测配置（包含维护模式的配置，由调用方决定是否跳过探测）"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_active_configs(self) -> list[ProviderConfig]:
        try:
            async with self._session_factory() as session:
                rows = await CheckConfigRepository(session).list_configs(enabled_only=True)
        except SQLAlchemyError as exc:
            raise ConfigSourceUnavailableError(f"config source unavailable: {exc}") from exc

        configs: list[ProviderConfig] = []
        for row in rows:
            if ProviderType.normalize(row.type) is None:
                logger.warning(f"check_config_unsupported_type name={row.name} type={row.type}")
                continue
            # 单行脏数据只跳过该配置，不影响其他 provider
            try:
                configs.append(ProviderConfig.from_model(row))
            except ValidationError as exc:
                logger.warning(
                    f"check_config_invalid name={row.name} id={row.id} "
                    f"errors={exc.error_count()}: {exc.errors(include_input=False)}"
                )
        return configs
