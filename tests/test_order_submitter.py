import asyncio
import threading
from decimal import Decimal

import pytest

from fakes import IDENTITY, FakeOrderSource, RecordingNotifier
from storefront.domain.errors import OrderServiceUnavailable
from storefront.domain.schemas import CartItem, CheckoutContext, DeliveryMethod, OrderPage
from storefront.repos.cart_repo import InMemoryCartStore
from storefront.services.cart_service import CartEngine
from storefront.services.order_service import OrderHistory, OrderSubmitter, build_order_request


def _context(**overrides):
    values = dict(
        destination_city="Homs",
        shipping_address=" Main Street 4 ",
        contact_phone="0999",
        selected_payment_method_id="bank_transfer",
        payment_proof="receipts/1.png",
    )
    values.update(overrides)
    return CheckoutContext(**values)


class DownOrderSource(FakeOrderSource):
    async def create_order(self, request):
        self.created.append(request)
        raise OrderServiceUnavailable("502 Bad Gateway")


class HangingOrderSource(FakeOrderSource):
    async def create_order(self, request):
        self.created.append(request)
        await asyncio.sleep(10)


@pytest.fixture
def orders():
    return FakeOrderSource()


@pytest.fixture
def submitter(orders, cart, catalog, notifier):
    return OrderSubmitter(orders, cart, catalog, OrderHistory(orders), notifier)


def test_build_request_for_shipping():
    request = build_order_request([CartItem(product_id="y", quantity=2)], _context())

    assert request.shipping_address == "Homs - Main Street 4"
    assert request.selected_city == "Homs"
    assert request.payment_receipt == "receipts/1.png"
    assert request.delivery_method == DeliveryMethod.SHIPPING


def test_build_request_for_pickup_with_cod():
    request = build_order_request(
        [CartItem(product_id="y", quantity=1)],
        _context(delivery_method=DeliveryMethod.PICKUP, selected_payment_method_id="cod"),
    )

    assert request.shipping_address is None
    assert request.selected_city is None
    assert request.payment_receipt is None


@pytest.mark.asyncio
async def test_success_clears_cart_and_refreshes(submitter, orders, cart, catalog, notifier):
    cart.add("y", 2)
    version = catalog.version

    result = await submitter.submit(cart.items, _context())

    assert result.ok
    assert result.receipt.order_id == "ORG-1"
    assert orders.created[0].payment_method_name == "Bank transfer"
    assert cart.is_empty()
    assert catalog.version == version + 1
    assert submitter.history.orders == [{"id": "STR-1"}]
    assert notifier.kinds() == ["order_placed"]


@pytest.mark.asyncio
async def test_rejection_keeps_cart(submitter, orders, cart, notifier):
    cart.add("y", 2)
    orders.reject_with = "Purchase limit exceeded"

    result = await submitter.submit(cart.items, _context())

    assert not result.ok
    assert result.retryable
    assert result.reason == "Purchase limit exceeded"
    assert cart.quantity_of("y") == 2
    assert notifier.kinds() == ["order_failed"]


@pytest.mark.asyncio
async def test_service_down_is_retryable(cart, catalog):
    orders = DownOrderSource()
    submitter = OrderSubmitter(orders, cart, catalog)
    cart.add("y", 1)

    result = await submitter.submit(cart.items, _context())

    assert not result.ok
    assert result.retryable
    assert cart.quantity_of("y") == 1


@pytest.mark.asyncio
async def test_timeout_is_a_failed_submission(cart, catalog):
    orders = HangingOrderSource()
    submitter = OrderSubmitter(orders, cart, catalog, timeout=0.01)
    cart.add("y", 1)

    result = await submitter.submit(cart.items, _context())

    assert not result.ok
    assert len(orders.created) == 1
    assert cart.quantity_of("y") == 1


@pytest.mark.asyncio
async def test_cancel_refreshes_catalog_and_history(submitter, orders, catalog, notifier):
    version = catalog.version

    result = await submitter.cancel("ORG-9")

    assert result.ok
    assert result.refund_amount == Decimal("0")
    assert orders.cancelled == ["ORG-9"]
    assert catalog.version == version + 1
    assert submitter.history.orders == [{"id": "STR-1"}]
    assert notifier.sent[-1][0] == IDENTITY


@pytest.mark.asyncio
async def test_cancel_rejected(submitter, orders, catalog):
    orders.reject_with = "Order can no longer be cancelled"
    version = catalog.version

    result = await submitter.cancel("ORG-9")

    assert not result.ok
    assert result.reason == "Order can no longer be cancelled"
    assert catalog.version == version


@pytest.mark.asyncio
async def test_history_pages_with_cursor(orders):
    orders.pages = [
        OrderPage(items=[{"id": "1"}, {"id": "2"}], has_more=True, next_cursor="1"),
        OrderPage(items=[{"id": "3"}], has_more=False),
    ]
    history = OrderHistory(orders)

    await history.refresh()
    await history.load_more()

    assert [o["id"] for o in history.orders] == ["1", "2", "3"]
    assert not history.has_more
    assert await history.load_more() is None


class ThreadRecordingNotifier(RecordingNotifier):
    def __init__(self):
        super().__init__()
        self.threads = []

    def notify(self, identity, kind, message):
        self.threads.append(threading.get_ident())
        super().notify(identity, kind, message)


class ThreadRecordingStore(InMemoryCartStore):
    def __init__(self):
        super().__init__()
        self.threads = []

    def delete(self, key):
        self.threads.append(threading.get_ident())
        super().delete(key)


@pytest.mark.asyncio
async def test_blocking_calls_run_off_the_event_loop(orders, catalog):
    store = ThreadRecordingStore()
    notifier = ThreadRecordingNotifier()
    cart = CartEngine(store, catalog, notifier)
    cart.load(IDENTITY)
    cart.add("y", 1)
    submitter = OrderSubmitter(orders, cart, catalog, notifier=notifier)
    loop_thread = threading.get_ident()

    result = await submitter.submit(cart.items, _context())

    assert result.ok
    assert store.threads and loop_thread not in store.threads
    assert notifier.threads and loop_thread not in notifier.threads
