# storefront/services/checkout_service.py
from decimal import Decimal
from typing import List

from storefront.domain.errors import ErrorKind
from storefront.domain.schemas import (
    CheckoutContext,
    CheckoutOut,
    CheckoutStep,
    ConfirmOut,
    DeliveryMethod,
    Issue,
    PaymentMethod,
    ShippingQuote,
    TransitionResult,
    is_cash_on_delivery,
)
from storefront.services.cart_service import CartEngine
from storefront.services.catalog import CatalogSnapshot
from storefront.services.eligibility import eligible_payment_methods, has_payment_conflict
from storefront.services.order_service import OrderSubmitter
from storefront.services.shipping_service import ShippingCostResolver
from storefront.utils.logging import get_logger
from storefront.utils.settings import DEFAULT_CITY

logger = get_logger(__name__)

#pola tekstowe nie przyjmuja None, pusty string czysci wartosc
_TEXT_FIELDS = ("destination_city", "contact_phone", "shipping_address")

_EDITABLE_FIELDS = (
    "delivery_method",
    "destination_city",
    "contact_phone",
    "shipping_address",
    "selected_payment_method_id",
    "payment_proof",
)


class CheckoutWorkflow:
    """
    Maszyna stanow checkoutu: cart -> details -> payment -> submitting.

    Przejscia liniowe, bez przeskakiwania. Kontekst checkoutu jest ulotny
    i resetowany przy kazdym otwarciu. Zmiana koszyka albo katalogu po
    kroku cart przelicza platnosci i wysylke, a niepoprawna pozycja
    cofa checkout do kroku cart z powodem.
    """

    def __init__(
        self,
        cart: CartEngine,
        catalog: CatalogSnapshot,
        shipping: ShippingCostResolver,
        submitter: OrderSubmitter,
        default_city: str = DEFAULT_CITY,
    ):
        self.cart = cart
        self.catalog = catalog
        self.shipping = shipping
        self.submitter = submitter
        self.default_city = default_city

        self.is_open = False
        self.is_submitting = False
        self.step = CheckoutStep.CART
        self.context = CheckoutContext(destination_city=default_city)
        self.issues: List[Issue] = []
        self.eligible: List[PaymentMethod] = []

        cart.subscribe(self._on_cart_changed)
        shipping.subscribe(self._on_shipping_quote)

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def subtotal(self) -> Decimal:
        return self.cart.total()

    @property
    def shipping_quote(self) -> ShippingQuote:
        if self.context.delivery_method == DeliveryMethod.PICKUP:
            return ShippingQuote(cost=Decimal("0"), resolved=True)
        return self.shipping.quote

    @property
    def grand_total(self) -> Decimal:
        return self.subtotal + self.context.shipping_cost

    @property
    def can_confirm(self) -> bool:
        return (
            self.is_open
            and not self.is_submitting
            and self.step == CheckoutStep.PAYMENT
            and not self.confirm_issues()
        )

    def cart_issues(self) -> List[Issue]:
        if self.cart.is_empty():
            return [Issue(kind=ErrorKind.VALIDATION_FAILED, message="Your cart is empty", field="cart")]

        issues = []
        for item in self.cart.items:
            product = self.catalog.resolve(item.product_id)
            if product is None:
                issues.append(self._unavailable(item.product_id))
            elif item.quantity > product.purchase_limit_per_buyer:
                issues.append(
                    Issue(
                        kind=ErrorKind.LIMIT_EXCEEDED,
                        message=f"You can buy at most {product.purchase_limit_per_buyer} of {product.name or product.id}",
                        product_id=item.product_id,
                    )
                )
            elif product.stock_available is not None and item.quantity > product.stock_available:
                issues.append(
                    Issue(
                        kind=ErrorKind.PRODUCT_UNAVAILABLE,
                        message=f"Only {product.stock_available} of {product.name or product.id} left in stock",
                        product_id=item.product_id,
                    )
                )
        return issues

    def details_issues(self) -> List[Issue]:
        if self.context.delivery_method == DeliveryMethod.PICKUP:
            return []

        issues = []
        required = (
            ("destination_city", "Please choose a city"),
            ("shipping_address", "Please enter the shipping address"),
            ("contact_phone", "Please enter a contact phone number"),
        )
        for field, message in required:
            if not getattr(self.context, field).strip():
                issues.append(Issue(kind=ErrorKind.VALIDATION_FAILED, message=message, field=field))
        return issues

    def payment_issues(self) -> List[Issue]:
        methods = self.catalog.payment_methods
        selected = self.context.selected_payment_method_id

        if has_payment_conflict(self.eligible, methods):
            return [
                Issue(
                    kind=ErrorKind.NO_COMMON_PAYMENT_METHOD,
                    message="Your cart contains products that require different payment methods. "
                    "Please split it into separate orders.",
                    field="selected_payment_method_id",
                )
            ]
        if selected not in {m.id for m in self.eligible}:
            return [
                Issue(
                    kind=ErrorKind.VALIDATION_FAILED,
                    message="Please choose a payment method",
                    field="selected_payment_method_id",
                )
            ]

        issues = []
        if not is_cash_on_delivery(selected) and not self.context.payment_proof:
            issues.append(
                Issue(
                    kind=ErrorKind.VALIDATION_FAILED,
                    message="Please attach the payment receipt",
                    field="payment_proof",
                )
            )

        quote = self.shipping_quote
        if self.context.delivery_method == DeliveryMethod.SHIPPING and not quote.resolved:
            issues.append(
                Issue(
                    kind=ErrorKind.SHIPPING_CALCULATION_FAILED,
                    message=quote.error or "Shipping cost has not been calculated yet",
                    field="shipping_cost",
                )
            )
        return issues

    def confirm_issues(self) -> List[Issue]:
        return self.cart_issues() + self.details_issues() + self.payment_issues()

    def state(self) -> CheckoutOut:
        return CheckoutOut(
            is_open=self.is_open,
            step=self.step,
            is_submitting=self.is_submitting,
            context=self.context,
            eligible_payment_methods=self.eligible,
            shipping=self.shipping_quote,
            subtotal=self.subtotal,
            grand_total=self.grand_total,
            issues=self.issues,
        )

    # =====================================================
    # COMMANDS
    # =====================================================
    def open(self) -> None:
        if self.is_submitting:
            # ponowne wejscie w trakcie wysylki, nic nie resetujemy
            self.is_open = True
            return

        self.context = CheckoutContext(destination_city=self.default_city)
        self.step = CheckoutStep.CART
        self.issues = []
        self.is_open = True
        logger.info(f"Checkout opened for {self.cart.identity}")
        self.recompute()

    def close(self) -> None:
        self.is_open = False
        if not self.is_submitting:
            self.step = CheckoutStep.CART
            self.shipping.cancel()

    def update(self, **changes) -> None:
        """Zmienia pola kontekstu. Dostawa i miasto wymuszaja przeliczenie."""
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Nieznane pola checkoutu: {sorted(unknown)}")
        cleared = [f for f in ("delivery_method", *_TEXT_FIELDS) if f in changes and changes[f] is None]
        if cleared:
            raise ValueError(f"Pola checkoutu nie moga byc puste (null): {cleared}")

        before = (self.context.delivery_method, self.context.destination_city)
        for field, value in changes.items():
            if field == "delivery_method":
                value = DeliveryMethod(value)
            setattr(self.context, field, value)

        if (self.context.delivery_method, self.context.destination_city) != before:
            self.recompute()

    def recompute(self) -> None:
        self.eligible = eligible_payment_methods(
            self.cart.items, self.catalog, self.catalog.payment_methods
        )
        self._ensure_payment_selection()

        if self.is_open:
            self.shipping.request(
                self.cart.items,
                self.context.destination_city,
                self.context.delivery_method,
            )
        self.context.shipping_cost = self.shipping_quote.cost

    def next(self) -> TransitionResult:
        if not self.is_open:
            return self._rejected([Issue(kind=ErrorKind.VALIDATION_FAILED, message="Checkout is not open")])

        if self.step == CheckoutStep.CART:
            if self.cart.is_empty():
                return self._rejected(self.cart_issues())
            return self._moved(CheckoutStep.DETAILS)

        if self.step == CheckoutStep.DETAILS:
            issues = self.details_issues()
            if issues:
                return self._rejected(issues)
            return self._moved(CheckoutStep.PAYMENT)

        # z payment dalej tylko przez confirm()
        return self._rejected(self.confirm_issues())

    def back(self) -> TransitionResult:
        previous = {
            CheckoutStep.DETAILS: CheckoutStep.CART,
            CheckoutStep.PAYMENT: CheckoutStep.DETAILS,
        }
        if self.step not in previous:
            return TransitionResult(ok=False, step=self.step, issues=[])
        return self._moved(previous[self.step])

    async def confirm(self) -> ConfirmOut:
        if self.is_submitting:
            return ConfirmOut(
                transition=TransitionResult(
                    ok=False,
                    step=self.step,
                    issues=[
                        Issue(
                            kind=ErrorKind.SUBMISSION_FAILED,
                            message="Your order is already being submitted",
                        )
                    ],
                )
            )

        if not self.is_open or self.step != CheckoutStep.PAYMENT:
            return ConfirmOut(
                transition=self._rejected(
                    [Issue(kind=ErrorKind.VALIDATION_FAILED, message="Please complete the previous steps first")]
                )
            )

        line_issues = self.cart_issues()
        if line_issues:
            self._force_back(line_issues)
            return ConfirmOut(transition=TransitionResult(ok=False, step=self.step, issues=line_issues))

        issues = self.details_issues() + self.payment_issues()
        if issues:
            return ConfirmOut(transition=self._rejected(issues))

        self.step = CheckoutStep.SUBMITTING
        self.is_submitting = True
        self.issues = []
        items = self.cart.items
        context = self.context.model_copy()
        logger.info(f"Submitting order for {self.cart.identity}: {len(items)} items")

        try:
            result = await self.submitter.submit(items, context)
        except Exception:
            self.step = CheckoutStep.PAYMENT
            raise
        finally:
            self.is_submitting = False

        if result.ok:
            self.is_open = False
            self.step = CheckoutStep.CART
            self.shipping.cancel()
        else:
            # wszystkie wpisane dane zostaja, uzytkownik poprawia i ponawia
            self.step = CheckoutStep.PAYMENT
            self.issues = [Issue(kind=ErrorKind.SUBMISSION_FAILED, message=result.reason or "Order failed")]

        return ConfirmOut(
            transition=TransitionResult(ok=result.ok, step=self.step, issues=self.issues),
            submission=result,
        )

    # =====================================================
    # INTERNALS
    # =====================================================
    def _ensure_payment_selection(self) -> None:
        ids = [m.id for m in self.eligible]
        if self.context.selected_payment_method_id not in ids:
            self.context.selected_payment_method_id = ids[0] if ids else None

    def _moved(self, step: CheckoutStep) -> TransitionResult:
        self.step = step
        self.issues = []
        return TransitionResult(ok=True, step=step)

    def _rejected(self, issues: List[Issue]) -> TransitionResult:
        self.issues = issues
        return TransitionResult(ok=False, step=self.step, issues=issues)

    def _force_back(self, issues: List[Issue]) -> None:
        logger.info(f"Checkout for {self.cart.identity} sent back to cart: {[i.message for i in issues]}")
        self.step = CheckoutStep.CART
        self.issues = issues

    def _unavailable(self, product_id: str) -> Issue:
        known = self.catalog.get(product_id)
        name = known.name if known is not None and known.name else product_id
        return Issue(
            kind=ErrorKind.PRODUCT_UNAVAILABLE,
            message=f"{name} is no longer available",
            product_id=product_id,
        )

    def _on_cart_changed(self, cart: CartEngine) -> None:
        if not self.is_open:
            return
        self.recompute()

        if self.is_submitting or self.step == CheckoutStep.CART:
            return
        # pozycje usuniete przez katalog juz zniknely z koszyka, powod bierzemy z last_removed
        issues = [self._unavailable(pid) for pid in cart.last_removed] + self.cart_issues()
        if issues:
            self._force_back(issues)

    def _on_shipping_quote(self, quote: ShippingQuote) -> None:
        if self.context.delivery_method == DeliveryMethod.SHIPPING:
            self.context.shipping_cost = quote.cost
        else:
            self.context.shipping_cost = Decimal("0")
