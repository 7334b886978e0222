# storefront/repos/redis_cart_repo.py
import redis
from redis.exceptions import RedisError

from storefront.domain.errors import PersistenceFailure
from storefront.repos.cart_repo import StoredItems, dump_items, parse_items
from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL

logger = get_logger(__name__)


class RedisCartStore:
    """
    -koszyk jako JSON pod kluczem tozsamosci
    -bez TTL, koszyk zyje do zamowienia albo recznego wyczyszczenia
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def _get(self, key: str):
        return self.redis.get(key)

    @redis_retry()
    def _set(self, key: str, value: str):
        return self.redis.set(name=key, value=value)

    @redis_retry()
    def _delete(self, key: str):
        return self.redis.delete(key)

    def load(self, key: str) -> StoredItems | None:
        try:
            return parse_items(self._get(key))
        except RedisError as e:
            raise PersistenceFailure(f"Redis GET {key} failed: {e}") from e

    def save(self, key: str, items: StoredItems) -> None:
        logger.debug(f"Redis SET {key} ({len(items)} items)")
        try:
            self._set(key, dump_items(items))
        except RedisError as e:
            raise PersistenceFailure(f"Redis SET {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._delete(key)
        except RedisError as e:
            raise PersistenceFailure(f"Redis DEL {key} failed: {e}") from e
