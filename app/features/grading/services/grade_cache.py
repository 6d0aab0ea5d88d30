from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.features.grading.schemas.grading import CacheEntry
from app.platform.config import settings
from app.platform.exceptions import CacheError
from app.platform.logger import get_logger

logger = get_logger(__name__)


class GradeCacheStore:
    """
    Completed grades stored as one JSON document per normalized URL.

    Writes replace whatever is stored under the key; there is no merge.
    """

    def __init__(
        self,
        redis: Redis,
        key_prefix: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.redis = redis
        self.key_prefix = key_prefix if key_prefix is not None else settings.CACHE_KEY_PREFIX
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_SECONDS

    def key_for(self, url: str) -> str:
        return f"{self.key_prefix}{url}"

    async def lookup(self, url: str) -> Optional[CacheEntry]:
        try:
            raw = await self.redis.get(self.key_for(url))
        except RedisError as e:
            raise CacheError(f"Cache lookup failed for {url}: {e}") from e

        if raw is None:
            return None

        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            raise CacheError(f"Cached entry for {url} is unreadable") from e

    async def write(self, entry: CacheEntry) -> None:
        payload = entry.model_dump_json(by_alias=True)

        try:
            await self.redis.set(self.key_for(entry.url), payload, ex=self.ttl_seconds)
        except RedisError as e:
            raise CacheError(f"Cache write failed for {entry.url}: {e}") from e

        logger.info(f"Cached grade for {entry.url}")
