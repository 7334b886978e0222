import inspect
import time

import pytest
from fastapi.testclient import TestClient

from fakes import (
    IDENTITY,
    FakeCatalogSource,
    FakeOrderSource,
    FakeShippingSource,
    RecordingNotifier,
    make_product,
)
from storefront.api.deps import Storefront
from storefront.api.routers import carts
from storefront.main import create_app
from storefront.repos.cart_repo import InMemoryCartStore


@pytest.fixture
def orders():
    return FakeOrderSource()


@pytest.fixture
def client(orders):
    storefront = Storefront(
        catalog_client=FakeCatalogSource(
            [make_product("x", limit=2), make_product("y", price="10", stock=3)]
        ),
        shipping_client=FakeShippingSource(cost="5"),
        order_client_factory=lambda identity: orders,
        store=InMemoryCartStore(),
        notifier=RecordingNotifier(),
        debounce_seconds=0,
    )
    with TestClient(create_app(storefront)) as client:
        yield client


def test_health(client):
    assert client.get("/health").status_code == 200


def test_catalog_is_loaded_on_startup(client):
    resp = client.post("/catalog/refresh")

    assert resp.status_code == 200
    assert resp.json()["products"] == 2


def test_cart_flow(client):
    assert client.post(f"/carts/{IDENTITY}/items", json={"product_id": "x", "quantity": 2}).json()[
        "outcome"
    ] == "ok"

    over = client.post(f"/carts/{IDENTITY}/items", json={"product_id": "x"})
    assert over.json()["outcome"] == "limit_exceeded"
    assert over.json()["quantity"] == 2

    client.post(f"/carts/{IDENTITY}/items", json={"product_id": "y"})
    summary = client.get(f"/carts/{IDENTITY}").json()
    assert summary["item_count"] == 3

    client.post(f"/carts/{IDENTITY}/items/x/decrease")
    patched = client.patch(f"/carts/{IDENTITY}/items/y", json={"delta": 10}).json()
    assert patched["clamped"]

    client.delete(f"/carts/{IDENTITY}/items/x")
    assert client.delete(f"/carts/{IDENTITY}").status_code == 204
    assert client.get(f"/carts/{IDENTITY}").json()["items"] == []


def test_invalid_quantity_is_rejected(client):
    resp = client.post(f"/carts/{IDENTITY}/items", json={"product_id": "x", "quantity": 0})

    assert resp.status_code == 422


def test_checkout_flow(client, orders):
    client.post(f"/carts/{IDENTITY}/items", json={"product_id": "y", "quantity": 1})

    opened = client.post(f"/checkout/{IDENTITY}/open").json()
    assert opened["step"] == "cart"
    assert client.post(f"/checkout/{IDENTITY}/next").json()["step"] == "details"

    client.patch(
        f"/checkout/{IDENTITY}",
        json={"shipping_address": "Street 1", "contact_phone": "0999"},
    )
    assert client.post(f"/checkout/{IDENTITY}/next").json()["step"] == "payment"

    state = client.get(f"/checkout/{IDENTITY}").json()
    assert state["context"]["selected_payment_method_id"] == "cod"

    for _ in range(100):
        if client.get(f"/checkout/{IDENTITY}").json()["shipping"]["resolved"]:
            break
        time.sleep(0.01)

    confirmed = client.post(f"/checkout/{IDENTITY}/confirm").json()

    assert confirmed["submission"]["ok"]
    assert len(orders.created) == 1
    assert client.get(f"/carts/{IDENTITY}").json()["items"] == []


def test_invalid_delivery_method(client):
    client.post(f"/checkout/{IDENTITY}/open")

    resp = client.patch(f"/checkout/{IDENTITY}", json={"delivery_method": "drone"})

    assert resp.status_code == 422


def test_orders_history_and_cancel(client, orders):
    listed = client.get(f"/orders/{IDENTITY}").json()
    assert listed["items"] == [{"id": "STR-1"}]

    cancelled = client.post(f"/orders/{IDENTITY}/ORG-1/cancel").json()
    assert cancelled["ok"]
    assert orders.cancelled == ["ORG-1"]


def test_null_text_field_is_rejected(client):
    client.post(f"/carts/{IDENTITY}/items", json={"product_id": "y"})
    client.post(f"/checkout/{IDENTITY}/open")
    client.post(f"/checkout/{IDENTITY}/next")

    resp = client.patch(
        f"/checkout/{IDENTITY}", json={"contact_phone": None, "shipping_address": "a"}
    )

    assert resp.status_code == 400
    nxt = client.post(f"/checkout/{IDENTITY}/next")
    assert nxt.status_code == 200
    assert nxt.json()["step"] == "details"


def test_cart_handlers_run_in_threadpool():
    for route in carts.router.routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path
