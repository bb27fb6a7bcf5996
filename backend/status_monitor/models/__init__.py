from .base import Base
from .check_config import CheckConfig
from .check_history import CheckHistory
from .poller_lease import PollerLease

__all__ = [
    "Base",
    "CheckConfig",
    "CheckHistory",
    "PollerLease",
]
