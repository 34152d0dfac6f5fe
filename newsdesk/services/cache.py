import aiosqlite
import json
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union
from newsdesk.config import settings
from newsdesk.services.logger import logger

# TTL sentinel for entries that only leave the cache through invalidation
NO_EXPIRY = None

# Cache families. Write paths sweep whole families rather than tracking
# exact dependencies; keep every pattern here, not at call sites.
ARTICLES_FAMILY = "articles:*"
HEADLINE_FAMILY = "headline:*"
CATEGORY_FAMILY = "category:*"
FEED_FAMILY = "feed:*"
NEWS_FAMILY = "news:*"
# Similar lists embed other articles
ARTICLE_SIMILAR_FAMILY = "article:similar:*"

ARTICLE_FAMILIES = (
    ARTICLES_FAMILY, HEADLINE_FAMILY, CATEGORY_FAMILY, FEED_FAMILY, NEWS_FAMILY, ARTICLE_SIMILAR_FAMILY,
)

# Key prefixes
FEED_MAIN = "feed:main"
FEED_CATEGORY = "feed:category"
FEED_TAG = "feed:tag"
NEWS_CATEGORY = "news:category"
ARTICLES_LIST = "articles:list"
ARTICLES_CATEGORY = "articles:category"
ARTICLE = "article"
ARTICLE_SIMILAR = "article:similar"
HEADLINE_MAIN = "headline:main"
CATEGORY_HEADLINE = "category:headline"

INIT_SQL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);
"""

def build_key(prefix: str, *parts: Any) -> str:
    """
    Colon-joined cache key. Parts are used in the order given, so callers
    must keep their parameter order stable or entries silently diverge.
    """
    return ":".join([prefix, *(str(part) for part in parts)])

def article_keys(article) -> List[str]:
    return [
        build_key(ARTICLE, article.slug),
        build_key(ARTICLE, article.id),
        build_key(ARTICLE_SIMILAR, article.slug),
    ]


class CacheGateway:
    """
    Read-through response cache backed by a local SQLite file.

    Every operation is best-effort: failures are logged and reported as a
    miss (get), a no-op (set) or zero removals (invalidate), never raised.
    """

    def __init__(
        self,
        db_path: Union[str, Path, None] = None,
        enabled: Optional[bool] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path or settings.cache_path
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled
        self.timeout = settings.CACHE_TIMEOUT_SECONDS if timeout is None else timeout
        self.clock = clock

    def get_connection(self):
        return aiosqlite.connect(self.db_path, timeout=self.timeout)

    async def init(self):
        if not self.enabled:
            logger.info("Response cache disabled")
            return
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            async with self.get_connection() as conn:
                await conn.executescript(INIT_SQL)
                await conn.commit()
            logger.info(f"Cache initialized at {self.db_path}")
        except Exception as e:
            logger.warning(f"Cache unavailable, continuing without it: {e}")

    async def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            async with self.get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
                )
                row = await cursor.fetchone()
                if row is None:
                    logger.debug(f"Cache miss: {key}")
                    return None

                value, expires_at = row
                if expires_at is not None and expires_at <= self.clock():
                    await conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                    await conn.commit()
                    logger.debug(f"Cache expired: {key}")
                    return None

            logger.debug(f"Cache hit: {key}")
            return json.loads(value)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = NO_EXPIRY) -> None:
        if not self.enabled:
            return
        try:
            payload = json.dumps(value)
            expires_at = None if ttl is NO_EXPIRY else self.clock() + ttl
            async with self.get_connection() as conn:
                await conn.execute(
                    "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, payload, expires_at)
                )
                await conn.commit()
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def read_through(
        self, key: str, ttl: Optional[int], build: Callable[[], Awaitable[Any]]
    ) -> Tuple[Any, bool]:
        """
        Returns (value, cached). On a miss `build` computes the value, which
        is stored with `ttl`. Errors raised by `build` propagate.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached, True

        value = await build()
        await self.set(key, value, ttl)
        return value, False

    async def invalidate(self, pattern: str) -> int:
        """Delete every key matching a glob pattern such as 'articles:*'."""
        if not self.enabled:
            return 0
        try:
            async with self.get_connection() as conn:
                cursor = await conn.execute(
                    "DELETE FROM cache_entries WHERE key GLOB ?", (pattern,)
                )
                await conn.commit()
                removed = cursor.rowcount
            if removed:
                logger.debug(f"Cache invalidated {removed} keys for {pattern}")
            return removed
        except Exception as e:
            logger.warning(f"Cache invalidate failed for {pattern}: {e}")
            return 0

    async def invalidate_families(self, *patterns: str) -> int:
        removed = 0
        for pattern in patterns:
            removed += await self.invalidate(pattern)
        return removed

    async def keys(self, pattern: str = "*") -> List[str]:
        if not self.enabled:
            return []
        try:
            async with self.get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT key FROM cache_entries WHERE key GLOB ? ORDER BY key", (pattern,)
                )
                rows = await cursor.fetchall()
            return [row[0] for row in rows]
        except Exception as e:
            logger.warning(f"Cache key listing failed for {pattern}: {e}")
            return []

cache = CacheGateway()
