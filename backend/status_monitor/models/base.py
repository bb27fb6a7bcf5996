import uuid
from datetime import datetime

from sqlalchemy import JSON
from sqlalchemy import UUID as SA_UUID
from sqlalchemy import DateTime, MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from status_monitor.utils.time_utils import Datetime

# 约束/索引命名约定，保证 PostgreSQL 与 SQLite 下生成的名称一致
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# PostgreSQL 存 JSONB，其余方言（测试用的 SQLite）退回 JSON
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(
        SA_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="主键 ID"
    )


class TimestampMixin:
    """配置行的创建/更新时间（UTC）"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Datetime.now, nullable=False, comment="创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=Datetime.now,
        onupdate=Datetime.now,
        nullable=False,
        comment="更新时间",
    )
