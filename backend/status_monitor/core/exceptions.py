"""
核心异常定义

探测失败不在此列：单个 provider 的失败总是被折叠为 status=failed 的 CheckResult。
"""


class StatusMonitorError(Exception):
    """基础异常"""


class ConfigurationError(StatusMonitorError):
    """启动配置缺失或非法（例如启用轮询但未设置 CHECK_NODE_ID）"""


class HistoryStoreUnavailableError(StatusMonitorError):
    """历史存储不可用（写入失败，或读取失败且无缓存快照）"""


class ConfigSourceUnavailableError(StatusMonitorError):
    """配置源读取失败"""


class LeaseBackendError(StatusMonitorError):
    """租约后端调用失败，按「非 leader」处理"""


class LeadershipLostError(StatusMonitorError):
    """探测过程中租约到期，本轮结果不写入"""
