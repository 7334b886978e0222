import asyncio
from decimal import Decimal

from storefront.domain.errors import OrderRejected, ShippingCalculationFailed
from storefront.domain.schemas import OrderPage, OrderReceipt, PaymentMethod, Product

IDENTITY = "user-1"


def make_product(product_id, price="10", limit=5, allowed=(), stock=None, expires_at=None, name=None):
    return Product(
        id=product_id,
        name=name or f"Product {product_id}",
        price=Decimal(price),
        purchase_limit_per_buyer=limit,
        allowed_payment_method_ids=frozenset(allowed),
        stock_available=stock,
        expires_at=expires_at,
    )


PAYMENT_METHODS = [
    PaymentMethod(id="cod", name="Cash on delivery"),
    PaymentMethod(id="bank_transfer", name="Bank transfer"),
    PaymentMethod(id="mobile_wallet", name="Mobile wallet"),
    PaymentMethod(id="crypto", name="Crypto", is_active=False),
]


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, identity, kind, message):
        self.sent.append((identity, kind, message))

    def kinds(self):
        return [kind for _, kind, _ in self.sent]


class FakeCatalogSource:
    def __init__(self, products, payment_methods=PAYMENT_METHODS):
        self.products = list(products)
        self.payment_methods = list(payment_methods)
        self.calls = 0

    async def list_products(self, filters=None):
        self.calls += 1
        return list(self.products)

    async def list_payment_methods(self):
        return list(self.payment_methods)

    def set_stock(self, product_id, stock):
        self.products = [
            p.model_copy(update={"stock_available": stock}) if p.id == product_id else p
            for p in self.products
        ]


class FakeShippingSource:
    def __init__(self, cost="5"):
        self.cost = Decimal(cost)
        self.fail = False
        self.calls = []

    async def calculate_shipping(self, items, city):
        self.calls.append((tuple(items), city))
        if self.fail:
            raise ShippingCalculationFailed("shipping service down")
        return self.cost


class GatedShippingSource:
    """Kazde wywolanie czeka na recznie otwarta bramke, kolejnosc odpowiedzi ustala test."""

    def __init__(self):
        self.calls = []

    async def calculate_shipping(self, items, city):
        gate = asyncio.Event()
        call = {"items": tuple(items), "city": city, "gate": gate, "cost": None}
        self.calls.append(call)
        await gate.wait()
        return call["cost"]

    def release(self, index, cost):
        self.calls[index]["cost"] = Decimal(cost)
        self.calls[index]["gate"].set()


class FakeOrderSource:
    def __init__(self):
        self.created = []
        self.cancelled = []
        self.reject_with = None
        self.pages = [OrderPage(items=[{"id": "STR-1"}], has_more=False)]
        self.on_create = None

    async def create_order(self, request):
        self.created.append(request)
        if self.on_create is not None:
            await self.on_create()
        if self.reject_with is not None:
            raise OrderRejected(self.reject_with, status_code=400)
        return OrderReceipt(order_id=f"ORG-{len(self.created)}", status="pending")

    async def cancel_order(self, order_id):
        self.cancelled.append(order_id)
        if self.reject_with is not None:
            raise OrderRejected(self.reject_with, status_code=400)
        return Decimal("0")

    async def list_my_orders(self, cursor=None):
        index = int(cursor) if cursor else 0
        return self.pages[index]


async def wait_until(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


