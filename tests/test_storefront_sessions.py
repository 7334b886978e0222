import pytest

from fakes import FakeCatalogSource, FakeOrderSource, FakeShippingSource, RecordingNotifier, make_product
from storefront.api.deps import Storefront
from storefront.domain.errors import PersistenceFailure
from storefront.repos.cart_repo import InMemoryCartStore


class BrokenStore(InMemoryCartStore):
    def load(self, key):
        raise PersistenceFailure("store offline")


@pytest.fixture
def storefront():
    products = [make_product("y"), make_product("z")]
    front = Storefront(
        catalog_client=FakeCatalogSource(products),
        shipping_client=FakeShippingSource(),
        order_client_factory=lambda identity: FakeOrderSource(),
        store=InMemoryCartStore(),
        notifier=RecordingNotifier(),
        debounce_seconds=0,
        max_sessions=2,
    )
    front.catalog.replace(products)
    return front


def test_session_is_reused_per_identity(storefront):
    assert storefront.session("a") is storefront.session("a")
    assert storefront.session("a").cart is not storefront.session("b").cart


def test_least_recently_used_session_is_evicted(storefront):
    storefront.session("a").cart.add("y", 1)
    storefront.session("b")
    storefront.session("a")
    storefront.session("c")

    assert list(storefront.sessions) == ["a", "c"]


def test_evicted_cart_no_longer_follows_catalog(storefront):
    evicted = storefront.session("a").cart
    evicted.add("y", 1)
    storefront.session("b")
    storefront.session("c")

    storefront.catalog.replace([make_product("z")])

    # odpiety koszyk nie jest juz uzgadniany ani zapisywany
    assert evicted.quantity_of("y") == 1
    assert storefront.store.load("store_cart_a") == [{"product_id": "y", "quantity": 1}]

    reloaded = storefront.session("a").cart
    assert reloaded is not evicted
    assert reloaded.is_empty()


def test_session_with_order_in_flight_is_kept(storefront):
    storefront.session("a").workflow.is_submitting = True
    storefront.session("b")
    storefront.session("c")

    assert "a" in storefront.sessions
    assert list(storefront.sessions) == ["a", "c"]


def test_failed_load_leaves_no_subscription(storefront):
    storefront.store = BrokenStore()
    listeners = len(storefront.catalog._listeners)

    with pytest.raises(PersistenceFailure):
        storefront.session("a")

    assert "a" not in storefront.sessions
    assert len(storefront.catalog._listeners) == listeners
