from typing import Any

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONDocument, TimestampMixin, UUIDPrimaryKeyMixin


class CheckConfig(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    被监控的模型服务配置

    - 由外部配置管理写入，核心只读
    - enabled=false 完全排除在轮询之外
    - is_maintenance=true 保持可见但跳过网络探测
    """

    __tablename__ = "check_configs"

    name: Mapped[str] = mapped_column(String(120), nullable=False, comment="展示名称")
    type: Mapped[str] = mapped_column(String(40), nullable=False, comment="provider 类型: openai/gemini/anthropic")
    model: Mapped[str] = mapped_column(String(120), nullable=False, comment="模型标识")
    endpoint: Mapped[str | None] = mapped_column(String(512), nullable=True, comment="请求地址，为空时使用默认地址")
    api_key: Mapped[str] = mapped_column(Text, nullable=False, comment="访问凭证")
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", comment="是否启用")
    is_maintenance: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false", comment="是否处于维护模式"
    )
    group_name: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True, comment="分组名称")
    request_headers: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument, nullable=False, default=dict, comment="自定义请求头"
    )
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONDocument, nullable=False, default=dict, comment="附加元数据"
    )
