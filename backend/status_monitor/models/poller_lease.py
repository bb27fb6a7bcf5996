from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PollerLease(Base):
    """
    轮询 leader 租约（单行）

    只能通过条件更新修改：租约为空/过期，或已由同一节点持有时才能写入。
    """

    __tablename__ = "check_poller_leases"

    lease_key: Mapped[str] = mapped_column(String(80), primary_key=True, comment="租约名")
    holder_node_id: Mapped[str] = mapped_column(String(120), nullable=False, comment="持有者节点 ID")
    lease_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, comment="租约到期时间")
    fencing_token: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1, comment="每次写入递增的版本号")
