from datetime import UTC, datetime


class Datetime:
    """
    统一的时间处理工具类
    核心原则：
    1. 系统内部（数据库、检测结果、租约）统一使用 UTC 时区
    2. 所有 datetime 对象必须带有时区信息 (Timezone-aware)
    """

    @staticmethod
    def now() -> datetime:
        """获取当前 UTC 时间（带时区信息）"""
        return datetime.now(UTC)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """
        将 datetime 规范为 UTC aware
        SQLite 读回的时间不带时区，默认视为 UTC
        """
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    @staticmethod
    def epoch_ms(dt: datetime | None = None) -> int:
        """毫秒时间戳，缺省为当前时间"""
        return int((dt or Datetime.now()).timestamp() * 1000)
