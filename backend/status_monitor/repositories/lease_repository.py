from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from status_monitor.models import PollerLease

from .base import BaseRepository


class LeaseRepository(BaseRepository[PollerLease]):
    """
    租约行的条件更新（CAS）

    只有租约为空、已过期或已由同一节点持有时写入成功；
    禁止「先读后写」的非原子更新。
    """

    model = PollerLease

    async def try_claim(
        self,
        lease_key: str,
        node_id: str,
        *,
        now: datetime,
        expires_at: datetime,
    ) -> int | None:
        """尝试获取/续约，成功返回新的 fencing token，失败返回 None（不修改任何数据）"""
        stmt = (
            update(PollerLease)
            .where(
                PollerLease.lease_key == lease_key,
                or_(
                    PollerLease.holder_node_id == node_id,
                    PollerLease.lease_expires_at < now,
                ),
            )
            .values(
                holder_node_id=node_id,
                lease_expires_at=expires_at,
                fencing_token=PollerLease.fencing_token + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount:
            await self.session.commit()
            return await self._read_token(lease_key)

        exists = await self.session.execute(
            select(PollerLease.lease_key).where(PollerLease.lease_key == lease_key)
        )
        if exists.first() is not None:
            # 由其他节点持有且未过期
            await self.session.rollback()
            return None

        # 首次创建：主键冲突说明并发插入输掉了竞争
        self.session.add(
            PollerLease(
                lease_key=lease_key,
                holder_node_id=node_id,
                lease_expires_at=expires_at,
                fencing_token=1,
            )
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return None
        return 1

    async def release(self, lease_key: str, node_id: str, *, now: datetime) -> bool:
        """主动让出租约：仅当持有者匹配时把到期时间置为当前时间"""
        result = await self.session.execute(
            update(PollerLease)
            .where(PollerLease.lease_key == lease_key, PollerLease.holder_node_id == node_id)
            .values(lease_expires_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return bool(result.rowcount)

    async def get(self, lease_key: str) -> PollerLease | None:
        result = await self.session.execute(
            select(PollerLease).where(PollerLease.lease_key == lease_key)
        )
        return result.scalars().first()

    async def _read_token(self, lease_key: str) -> int:
        result = await self.session.execute(
            select(PollerLease.fencing_token).where(PollerLease.lease_key == lease_key)
        )
        return int(result.scalar() or 0)
