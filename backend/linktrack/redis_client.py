import json
import redis
from typing import Optional, Any, cast
from .config import settings

# Connection pool; connections are opened lazily on first command
pool = redis.ConnectionPool(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    password=settings.REDIS_PASSWORD or None,
    decode_responses=True,
    max_connections=20,
    socket_timeout=1.0,
    socket_connect_timeout=1.0,
)

redis_client = redis.Redis(connection_pool=pool)


class RedisService:
    """Redis cache for geolocation lookups.

    Every method swallows Redis errors and reports a miss or failure instead.
    """

    GEO_CACHE_PREFIX = "geo:"

    @staticmethod
    def get_cached_geo(ip: str) -> Optional[dict[str, Any]]:
        """Return the cached geolocation payload for an IP, if any."""
        try:
            raw = redis_client.get(f"{RedisService.GEO_CACHE_PREFIX}{ip}")
            if not raw:
                return None
            data = json.loads(cast(str, raw))
            return data if isinstance(data, dict) else None
        except (redis.RedisError, ValueError):
            return None

    @staticmethod
    def cache_geo(ip: str, data: dict[str, Any], ttl: Optional[int] = None) -> bool:
        """Cache a geolocation payload for an IP."""
        if ttl is None:
            ttl = settings.GEO_CACHE_TTL
        try:
            redis_client.setex(
                f"{RedisService.GEO_CACHE_PREFIX}{ip}", ttl, json.dumps(data)
            )
            return True
        except (redis.RedisError, TypeError, ValueError):
            return False

    @staticmethod
    def health_check() -> bool:
        """Check Redis connection health."""
        try:
            return bool(redis_client.ping())
        except redis.RedisError:
            return False
