import uuid

from redis.exceptions import RedisError

from academy_ledger.infrastructure.cache.redis_client import get_redis_client
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)

RELEASE_LOCK_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


def acquire_lock(lock_key: str, ttl_seconds: int) -> str | None:
    """Take ``lock_key`` for ``ttl_seconds``. Returns the owner token, or None when held.

    An unreachable Redis does not block the caller.
    """
    token = str(uuid.uuid4())
    try:
        acquired = bool(get_redis_client().set(lock_key, token, nx=True, ex=ttl_seconds))
    except RedisError as exc:
        logger.warning("lock_backend_unavailable", lock_key=lock_key, error=str(exc))
        return token
    return token if acquired else None


def release_lock(lock_key: str, token: str) -> None:
    try:
        get_redis_client().eval(RELEASE_LOCK_SCRIPT, 1, lock_key, token)
    except RedisError as exc:
        logger.warning("lock_release_failed", lock_key=lock_key, error=str(exc))
