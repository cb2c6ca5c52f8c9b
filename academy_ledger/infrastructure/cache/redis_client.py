from redis import Redis
from redis.exceptions import RedisError

from academy_ledger.config import settings
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


def get_redis_client() -> Redis:
    """Client for the generation locks and the health check.

    Connect and command timeouts both use ``redis_socket_timeout_seconds``.
    """
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
        socket_timeout=settings.redis_socket_timeout_seconds,
    )


def redis_is_available(client: Redis) -> bool:
    try:
        return bool(client.ping())
    except RedisError as exc:
        logger.warning("redis_unavailable", error=str(exc))
        return False
