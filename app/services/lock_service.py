import uuid
from contextlib import contextmanager

import redis

from app.domain.errors import ConflictError
from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete runs atomically inside redis, so a lock that expired and
# was taken by another request is never released by the previous owner
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    -one writer per user cart
    -SET NX EX with a per-call token
    -release through lua compare-and-delete
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(user_id: str) -> str:
        return f"cart:{user_id}:lock"

    @redis_retry()
    def acquire_cart_lock(self, user_id: str, token: str, ttl: int) -> bool:
        key = self._key(user_id)
        logger.info(f"Acquire lock {key}")
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release_cart_lock(self, user_id: str, token: str) -> bool:
        key = self._key(user_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    @contextmanager
    def cart_lock(self, user_id: str, ttl: int):
        token = uuid.uuid4().hex
        if not self.acquire_cart_lock(user_id, token, ttl):
            raise ConflictError("Cart is being modified by another request")
        try:
            yield token
        finally:
            try:
                self.release_cart_lock(user_id, token)
            except redis.RedisError as e:
                # the key still expires after ttl
                logger.warning(f"Release of {self._key(user_id)} failed, expires in {ttl}s: {e}")
