import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.data.database import Base
from storefront.data.models.cart_record import CartRecordModel
from storefront.domain.errors import PersistenceFailure
from storefront.repos.cart_repo import InMemoryCartStore, SqlCartStore, parse_items
from storefront.repos.redis_cart_repo import RedisCartStore

ROWS = [{"product_id": "a", "quantity": 2}, {"product_id": "b", "quantity": 1}]


class DictRedis:
    def __init__(self):
        self.data = {}
        self.down = False

    def get(self, key):
        if self.down:
            raise RedisConnectionError("redis down")
        return self.data.get(key)

    def set(self, name, value):
        if self.down:
            raise RedisConnectionError("redis down")
        self.data[name] = value
        return True

    def delete(self, key):
        return int(self.data.pop(key, None) is not None)


@pytest.fixture
def sql_store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[CartRecordModel.__table__])
    return SqlCartStore(sessionmaker(bind=engine))


@pytest.fixture
def redis_store():
    return RedisCartStore(client=DictRedis())


@pytest.mark.parametrize("store_name", ["memory", "sql", "redis"])
def test_save_load_delete(store_name, sql_store, redis_store):
    store = {"memory": InMemoryCartStore(), "sql": sql_store, "redis": redis_store}[store_name]

    assert store.load("k") is None
    store.save("k", ROWS)
    assert store.load("k") == ROWS

    store.save("k", ROWS[:1])
    assert store.load("k") == ROWS[:1]

    store.delete("k")
    store.delete("k")
    assert store.load("k") is None


def test_redis_errors_become_persistence_failures():
    client = DictRedis()
    client.down = True
    store = RedisCartStore(client=client)

    with pytest.raises(PersistenceFailure):
        store.save("k", ROWS)


def test_corrupted_record_reads_as_empty():
    assert parse_items("{not json") == []
    assert parse_items('{"product_id": "a"}') == []
    assert parse_items('[{"product_id": "a", "quantity": 1}, 3]') == [{"product_id": "a", "quantity": 1}]
