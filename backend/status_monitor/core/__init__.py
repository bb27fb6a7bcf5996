from .cache import cache
from .config import settings
from .database import AsyncSessionLocal, engine
from .logging import logger, setup_logging

__all__ = [
    "AsyncSessionLocal",
    "cache",
    "engine",
    "logger",
    "settings",
    "setup_logging"
]
