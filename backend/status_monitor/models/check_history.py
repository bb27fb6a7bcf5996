import uuid
from datetime import datetime

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDPrimaryKeyMixin


class CheckHistory(Base, UUIDPrimaryKeyMixin):
    """单次探测结果（只追加，按 provider 保留最近 N 条）"""

    __tablename__ = "check_history"
    __table_args__ = (
        Index("ix_check_history_config_checked_at", "config_id", "checked_at"),
    )

    config_id: Mapped[uuid.UUID] = mapped_column(
        SA_UUID(as_uuid=True),
        ForeignKey("check_configs.id", ondelete="CASCADE"),
        nullable=False,
        comment="所属配置",
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, comment="operational/degraded/failed")
    latency_ms: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="流式响应总耗时")
    ping_latency_ms: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="端点连通耗时")
    checked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, comment="检测时间")
    message: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="检测说明")
