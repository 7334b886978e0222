# storefront/domain/schemas.py
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from storefront.domain.errors import ErrorKind


class DeliveryMethod(str, Enum):
    SHIPPING = "shipping"
    PICKUP = "pickup"


class CheckoutStep(str, Enum):
    CART = "cart"
    DETAILS = "details"
    PAYMENT = "payment"
    SUBMITTING = "submitting"


class CartOutcome(str, Enum):
    OK = "ok"
    LIMIT_EXCEEDED = "limit_exceeded"
    PRODUCT_UNAVAILABLE = "product_unavailable"
    NOT_IN_CART = "not_in_cart"


# =====================================================
# KATALOG
# =====================================================
class PaymentMethod(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    is_active: bool = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    details: str | None = None

    @property
    def is_cash_on_delivery(self) -> bool:
        return is_cash_on_delivery(self.id)


def is_cash_on_delivery(method_id: str | None) -> bool:
    #metody "za pobraniem" rozpoznajemy po id, np. "cod", "cod_damascus"
    return bool(method_id) and "cod" in method_id.lower()


class Product(BaseModel):
    """Produkt z katalogu, niezmienny w obrebie jednego snapshotu."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    price: Decimal = Field(..., ge=0)
    purchase_limit_per_buyer: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("purchase_limit_per_buyer", "purchaseLimitPerBuyer"),
    )
    allowed_payment_method_ids: frozenset[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices(
            "allowed_payment_method_ids", "allowedPaymentMethods", "allowed_payment_methods"
        ),
    )
    expires_at: datetime | None = Field(
        None, validation_alias=AliasChoices("expires_at", "expiresAt")
    )
    stock_available: int | None = Field(
        None, ge=0, validation_alias=AliasChoices("stock_available", "stockAvailable")
    )

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> str:
        return str(value)

    @field_validator("allowed_payment_method_ids", mode="before")
    @classmethod
    def _none_means_unrestricted(cls, value: Any) -> Any:
        return value or frozenset()

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= now

    def allows_payment_method(self, method_id: str) -> bool:
        return not self.allowed_payment_method_ids or method_id in self.allowed_payment_method_ids


# =====================================================
# KOSZYK
# =====================================================
class CartItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int = Field(..., ge=1)


class CartLine(BaseModel):
    product_id: str
    name: str = ""
    quantity: int
    price: Decimal
    line_total: Decimal
    purchase_limit_per_buyer: int


class CartSummary(BaseModel):
    identity: str | None = None
    items: List[CartLine]
    item_count: int
    total: Decimal


class CartResult(BaseModel):
    outcome: CartOutcome
    product_id: str
    quantity: int = 0  # ilosc w koszyku po operacji, 0 gdy brak pozycji
    clamped: bool = False
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == CartOutcome.OK


class LoadResult(BaseModel):
    identity: str
    removed: int = 0
    adjusted: int = 0


# =====================================================
# CHECKOUT
# =====================================================
class CheckoutContext(BaseModel):
    """Dane jednego podejscia do checkoutu, nie sa nigdzie zapisywane."""

    delivery_method: DeliveryMethod = DeliveryMethod.SHIPPING
    destination_city: str = ""
    contact_phone: str = ""
    shipping_address: str = ""
    selected_payment_method_id: str | None = None
    payment_proof: str | None = None
    shipping_cost: Decimal = Decimal("0")


class Issue(BaseModel):
    kind: ErrorKind
    message: str
    field: str | None = None
    product_id: str | None = None


class TransitionResult(BaseModel):
    ok: bool
    step: CheckoutStep
    issues: List[Issue] = Field(default_factory=list)


class ShippingQuote(BaseModel):
    cost: Decimal = Decimal("0")
    resolved: bool = False
    pending: bool = False
    error: str | None = None


# =====================================================
# ZAMOWIENIA
# =====================================================
class OrderItemIn(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class OrderRequest(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    delivery_method: DeliveryMethod
    shipping_address: str | None = None
    selected_city: str | None = None
    contact_phone: str
    payment_method_id: str
    payment_method_name: str | None = None
    payment_receipt: str | None = None


class OrderReceipt(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    order_id: str = Field(..., validation_alias=AliasChoices("order_id", "orderId", "id"))
    status: str | None = None
    total: Decimal | None = None

    @field_validator("order_id", mode="before")
    @classmethod
    def _order_id_as_str(cls, value: Any) -> str:
        return str(value)


class SubmissionResult(BaseModel):
    ok: bool
    receipt: OrderReceipt | None = None
    kind: ErrorKind | None = None
    reason: str | None = None
    retryable: bool = False


class CancelResult(BaseModel):
    ok: bool
    order_id: str
    refund_amount: Decimal | None = None
    reason: str | None = None


class OrderPage(BaseModel):
    items: List[dict] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None


# =====================================================
# API
# =====================================================
class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: str = Field(..., min_length=1, description="ID produktu")
    quantity: int = Field(1, gt=0, description="Ilość produktu (musi być > 0)")
    silent: bool = False


class QuantityDeltaIn(BaseModel):
    """Schema dla zmiany ilosci (+1 / -1)."""

    delta: int


class CheckoutUpdateIn(BaseModel):
    """Schema dla aktualizacji danych checkoutu, pola pominiete nie sa zmieniane."""

    delivery_method: DeliveryMethod | None = None
    destination_city: str | None = None
    contact_phone: str | None = None
    shipping_address: str | None = None
    selected_payment_method_id: str | None = None
    payment_proof: str | None = None


class CheckoutOut(BaseModel):
    """Schema dla stanu checkoutu (response)."""

    is_open: bool
    step: CheckoutStep
    is_submitting: bool
    context: CheckoutContext
    eligible_payment_methods: List[PaymentMethod]
    shipping: ShippingQuote
    subtotal: Decimal
    grand_total: Decimal
    issues: List[Issue] = Field(default_factory=list)


class ConfirmOut(BaseModel):
    transition: TransitionResult
    submission: SubmissionResult | None = None
