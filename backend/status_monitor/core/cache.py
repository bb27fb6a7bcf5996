from pathlib import Path
from typing import Any

from redis.asyncio import Redis, from_url

from status_monitor.core.config import settings
from status_monitor.core.logging import logger

SCRIPTS_DIR = Path(__file__).parent / "redis_scripts"


class CacheService:
    """
    可选的 Redis 连接

    只在 LEADER_LEASE_BACKEND=redis 时被租约使用；未配置 REDIS_URL 时保持禁用。
    所有 key 统一加 CACHE_PREFIX 前缀，Lua 脚本放在 redis_scripts/ 下按文件名调用。
    """

    def __init__(self, url: str | None = None, prefix: str | None = None):
        self._url = settings.REDIS_URL if url is None else url
        self._prefix = settings.CACHE_PREFIX if prefix is None else prefix
        self._redis: Redis | None = None
        self._script_sha: dict[str, str] = {}
        self._script_source: dict[str, str] = {}

    def init(self) -> None:
        if not self._url:
            logger.warning("redis_disabled: REDIS_URL not set")
            return
        self._redis = from_url(self._url, encoding=settings.REDIS_ENCODING, decode_responses=False)
        logger.info("redis_initialized")

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            raise RuntimeError("CacheService not initialized. Call init() first.")
        return self._redis

    def make_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def script_source(self, name: str) -> str:
        if name not in self._script_source:
            self._script_source[name] = (SCRIPTS_DIR / f"{name}.lua").read_text(encoding="utf-8")
        return self._script_source[name]

    async def preload_scripts(self) -> None:
        """SCRIPT LOAD 所有脚本；失败的脚本在调用时退回 EVAL"""
        if self._redis is None:
            return
        for path in sorted(SCRIPTS_DIR.glob("*.lua")):
            try:
                self._script_sha[path.stem] = await self._redis.script_load(self.script_source(path.stem))
            except Exception as exc:
                logger.warning(f"redis_script_load_failed name={path.stem}: {exc}")
        logger.info(f"redis_scripts_loaded names={sorted(self._script_sha)}")

    async def run_script(self, name: str, keys: list[str], args: list[Any]) -> Any:
        full_keys = [self.make_key(k) for k in keys]
        sha = self._script_sha.get(name)
        if sha:
            return await self.redis.evalsha(sha, len(full_keys), *full_keys, *args)
        return await self.redis.eval(self.script_source(name), len(full_keys), *full_keys, *args)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


cache = CacheService()
