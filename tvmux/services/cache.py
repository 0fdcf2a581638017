"""
SQLite-based key-value cache for published channel data.
Provides get/set/multi_set with TTL-based expiry.
"""
import aiosqlite
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Any
from tvmux.config import get_settings

DEFAULT_TTL_SECONDS = 86400
BUSY_TIMEOUT_SECONDS = 30.0


class CacheService:
    """Async SQLite cache service for published data."""

    def __init__(self, db_path: Optional[str] = None, default_ttl: Optional[int] = None):
        settings = get_settings()
        self.db_path = db_path or settings.database_path
        self.default_ttl = default_ttl or settings.cache_ttl_seconds or DEFAULT_TTL_SECONDS
        self._ensure_directory()

    def _ensure_directory(self):
        """Create data directory if it doesn't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self):
        return aiosqlite.connect(self.db_path, timeout=BUSY_TIMEOUT_SECONDS)

    async def initialize(self):
        """Create the cache table if it doesn't exist."""
        async with self._connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS cache (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at TIMESTAMP NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            await db.execute("CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache(expires_at)")
            await db.commit()

    def _expiry(self, ttl_seconds: Optional[int]) -> str:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        return (datetime.utcnow() + timedelta(seconds=ttl)).isoformat()

    async def get(self, key: str) -> Optional[Any]:
        """Get cached value if not expired."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT value FROM cache WHERE key = ? AND expires_at > ?",
                (key, datetime.utcnow().isoformat())
            )
            row = await cursor.fetchone()
            if row:
                return json.loads(row[0])
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None):
        """Set cached value with TTL."""
        async with self._connect() as db:
            await db.execute(
                """INSERT OR REPLACE INTO cache (key, value, expires_at)
                   VALUES (?, ?, ?)""",
                (key, json.dumps(value), self._expiry(ttl_seconds))
            )
            await db.commit()

    async def multi_set(self, items: dict[str, Any], ttl_seconds: Optional[int] = None):
        """Store many key-value pairs in a single transaction."""
        if not items:
            return

        expires_at = self._expiry(ttl_seconds)
        async with self._connect() as db:
            await db.executemany(
                """INSERT OR REPLACE INTO cache (key, value, expires_at)
                   VALUES (?, ?, ?)""",
                [(key, json.dumps(value), expires_at) for key, value in items.items()]
            )
            await db.commit()

    async def keys(self) -> list[str]:
        """List all non-expired keys."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT key FROM cache WHERE expires_at > ? ORDER BY key",
                (datetime.utcnow().isoformat(),)
            )
            rows = await cursor.fetchall()
            return [row[0] for row in rows]

    async def clear_expired(self) -> int:
        """Remove expired cache entries."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM cache WHERE expires_at < ?",
                (datetime.utcnow().isoformat(),)
            )
            await db.commit()
            return cursor.rowcount


async def get_cache(db_path: Optional[str] = None) -> CacheService:
    """Create an initialized cache service."""
    cache = CacheService(db_path)
    await cache.initialize()
    return cache
