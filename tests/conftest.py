from datetime import datetime, timedelta, timezone

import pytest

from fakes import IDENTITY, PAYMENT_METHODS, FakeCatalogSource, RecordingNotifier, make_product
from storefront.repos.cart_repo import InMemoryCartStore
from storefront.services.cart_service import CartEngine
from storefront.services.catalog import CatalogSnapshot


@pytest.fixture
def products():
    return [
        make_product("x", price="10", limit=2),
        make_product("y", price="10", limit=5),
        make_product("z", price="5", limit=5),
    ]


@pytest.fixture
def catalog(products):
    snapshot = CatalogSnapshot(FakeCatalogSource(products))
    snapshot.replace(products, PAYMENT_METHODS)
    return snapshot


@pytest.fixture
def store():
    return InMemoryCartStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def cart(store, catalog, notifier):
    engine = CartEngine(store, catalog, notifier)
    engine.load(IDENTITY)
    return engine


@pytest.fixture
def expired_at():
    return datetime.now(timezone.utc) - timedelta(hours=1)
