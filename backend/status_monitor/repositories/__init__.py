from .base import BaseRepository
from .check_config_repository import CheckConfigRepository
from .check_history_repository import CheckHistoryRepository
from .lease_repository import LeaseRepository

__all__ = [
    "BaseRepository",
    "CheckConfigRepository",
    "CheckHistoryRepository",
    "LeaseRepository",
]
