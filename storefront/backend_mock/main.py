# storefront/backend_mock/main.py
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List

from fastapi import FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, Field

from storefront.domain.schemas import DeliveryMethod, OrderRequest, is_cash_on_delivery

app = FastAPI(title="Store backend (dev mock)")

PAGE_SIZE = 10
OTHER_CITY = "Other"

PAYMENT_METHODS = [
    {"id": "cod", "name": "Cash on delivery", "is_active": True, "details": "Pay the courier"},
    {"id": "bank_transfer", "name": "Bank transfer", "is_active": True, "details": "IBAN SY00 0000"},
    {"id": "mobile_wallet", "name": "Mobile wallet", "is_active": True, "details": "Send to 0999 000 000"},
]

PRODUCTS: Dict[str, dict] = {
    "1": {"id": "1", "name": "Keyboard", "price": "199.99", "purchase_limit_per_buyer": 3,
          "allowed_payment_method_ids": [], "stock_available": 25, "shipping_size": "s"},
    "2": {"id": "2", "name": "Mouse", "price": "49.50", "purchase_limit_per_buyer": 5,
          "allowed_payment_method_ids": ["cod", "bank_transfer"], "stock_available": 40,
          "shipping_size": "s", "static_shipping_cost": "2"},
    "3": {"id": "3", "name": "Monitor", "price": "899.00", "purchase_limit_per_buyer": 1,
          "allowed_payment_method_ids": ["bank_transfer"], "stock_available": 4, "shipping_size": "l"},
    "4": {"id": "4", "name": "Flash deal: headset", "price": "59.00", "purchase_limit_per_buyer": 2,
          "allowed_payment_method_ids": [], "stock_available": 10, "shipping_size": "m",
          "expires_at": (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()},
}

#ceny wysylki wg miasta i rozmiaru paczki
SHIPPING_PRICES = [
    {"city": "Damascus", "s": "3", "m": "5", "l": "9"},
    {"city": "Aleppo", "s": "5", "m": "8", "l": "14"},
    {"city": OTHER_CITY, "s": "7", "m": "10", "l": "18"},
]

ORDERS: List[dict] = []


class ShippingItemIn(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class ShippingIn(BaseModel):
    items: List[ShippingItemIn] = Field(..., min_length=1)
    city: str


def _product_or_404(product_id: str) -> dict:
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _city_prices(city: str) -> dict | None:
    by_city = {row["city"]: row for row in SHIPPING_PRICES}
    return by_city.get(city) or by_city.get(OTHER_CITY)


def _shipping_cost(product: dict, city: str) -> Decimal:
    if product.get("static_shipping_cost") is not None:
        return Decimal(product["static_shipping_cost"])
    prices = _city_prices(city)
    if not prices:
        return Decimal("0")
    return Decimal(prices.get(product.get("shipping_size") or "m", "0"))


@app.get("/products")
def list_products():
    return {"data": list(PRODUCTS.values())}


@app.get("/products/{product_id}")
def get_product(product_id: str):
    return _product_or_404(product_id)


@app.get("/payment-methods")
def list_payment_methods():
    return {"data": PAYMENT_METHODS}


@app.post("/shipping/calculate")
def calculate_shipping(payload: ShippingIn):
    total = Decimal("0")
    for item in payload.items:
        product = PRODUCTS.get(item.product_id)
        if product is None:
            continue
        total += _shipping_cost(product, payload.city)
    return {"cost": str(total)}


@app.post("/orders", status_code=201)
def purchase(payload: OrderRequest, x_identity: str = Header("anonymous")):
    now = datetime.now(timezone.utc)

    # walidacja calego zamowienia przed zmiana stanow
    for item in payload.items:
        product = _product_or_404(item.product_id)
        stock = product.get("stock_available")
        if stock is not None and stock < item.quantity:
            raise HTTPException(
                status_code=400,
                detail=f"'{product['name']}' is not available in the requested quantity. Available: {stock}",
            )
        if item.quantity > product["purchase_limit_per_buyer"]:
            raise HTTPException(
                status_code=400,
                detail=f"You can buy at most {product['purchase_limit_per_buyer']} of '{product['name']}'",
            )
        expires = product.get("expires_at")
        if expires and datetime.fromisoformat(expires) < now:
            raise HTTPException(status_code=400, detail=f"The offer on '{product['name']}' has ended")
        allowed = product.get("allowed_payment_method_ids") or []
        if allowed and payload.payment_method_id not in allowed:
            raise HTTPException(
                status_code=400,
                detail=f"'{product['name']}' cannot be paid with {payload.payment_method_id}",
            )

    cod = is_cash_on_delivery(payload.payment_method_id)
    if not cod and not payload.payment_receipt:
        raise HTTPException(status_code=400, detail="Payment receipt is required")

    group_id = f"ORG-{uuid.uuid4().hex[:10].upper()}"
    total = Decimal("0")
    for item in payload.items:
        product = PRODUCTS[item.product_id]
        if product.get("stock_available") is not None:
            product["stock_available"] -= item.quantity
        shipping = Decimal("0")
        if payload.delivery_method == DeliveryMethod.SHIPPING:
            shipping = _shipping_cost(product, payload.selected_city or OTHER_CITY)
        line_total = Decimal(product["price"]) * item.quantity + shipping
        total += line_total
        ORDERS.append({
            "id": f"STR-{uuid.uuid4().hex[:8].upper()}",
            "order_group_id": group_id,
            "buyer_id": x_identity,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "total": str(line_total),
            "status": "pending" if cod else "payment_verification",
            "created_at": now.isoformat(),
        })

    return {"order_id": group_id, "status": "pending" if cod else "payment_verification", "total": str(total)}


@app.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str, x_identity: str = Header("anonymous")):
    order = next((o for o in ORDERS if o["id"] == order_id), None)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    if order["buyer_id"] != x_identity:
        raise HTTPException(status_code=403, detail="You cannot cancel this order")
    if order["status"] not in ("pending", "payment_verification"):
        raise HTTPException(status_code=400, detail="This order can no longer be cancelled")

    product = PRODUCTS.get(order["product_id"])
    if product and product.get("stock_available") is not None:
        product["stock_available"] += order["quantity"]
    order["status"] = "cancelled"
    return {"order_id": order_id, "refund_amount": None}


@app.get("/orders")
def list_orders(cursor: str | None = Query(None), x_identity: str = Header("anonymous")):
    mine = [o for o in reversed(ORDERS) if o["buyer_id"] == x_identity]
    start = int(cursor) if cursor else 0
    page = mine[start:start + PAGE_SIZE]
    has_more = start + PAGE_SIZE < len(mine)
    return {
        "items": page,
        "has_more": has_more,
        "next_cursor": str(start + PAGE_SIZE) if has_more else None,
    }
