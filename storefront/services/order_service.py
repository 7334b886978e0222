# storefront/services/order_service.py
import asyncio
from decimal import Decimal
from typing import List, Protocol

from storefront.domain.errors import (
    ErrorKind,
    OrderRejected,
    PersistenceFailure,
    RemoteServiceError,
)
from storefront.domain.schemas import (
    CancelResult,
    CartItem,
    CheckoutContext,
    DeliveryMethod,
    OrderItemIn,
    OrderPage,
    OrderReceipt,
    OrderRequest,
    PaymentMethod,
    SubmissionResult,
    is_cash_on_delivery,
)
from storefront.services.cart_service import CartEngine, Notifier
from storefront.services.catalog import CatalogSnapshot
from storefront.utils.logging import get_logger
from storefront.utils.settings import REMOTE_TIMEOUT_SECONDS

logger = get_logger(__name__)


class OrderSource(Protocol):
    async def create_order(self, request: OrderRequest) -> OrderReceipt: ...

    async def cancel_order(self, order_id: str) -> Decimal | None: ...

    async def list_my_orders(self, cursor: str | None = None) -> OrderPage: ...


def build_order_request(
    items: List[CartItem],
    context: CheckoutContext,
    method: PaymentMethod | None = None,
) -> OrderRequest:
    shipping = context.delivery_method == DeliveryMethod.SHIPPING
    method_id = context.selected_payment_method_id or ""

    return OrderRequest(
        items=[OrderItemIn(product_id=i.product_id, quantity=i.quantity) for i in items],
        delivery_method=context.delivery_method,
        #backend trzyma adres jako jedno pole "miasto - adres"
        shipping_address=(
            f"{context.destination_city} - {context.shipping_address.strip()}" if shipping else None
        ),
        selected_city=context.destination_city if shipping else None,
        contact_phone=context.contact_phone.strip(),
        payment_method_id=method_id,
        payment_method_name=method.name if method else None,
        payment_receipt=None if is_cash_on_delivery(method_id) else context.payment_proof,
    )


class OrderHistory:
    """Lista zamowien uzytkownika, stronicowana kursorem."""

    def __init__(self, source: OrderSource, timeout: float = REMOTE_TIMEOUT_SECONDS):
        self.source = source
        self.timeout = timeout
        self.orders: List[dict] = []
        self.has_more = False
        self.next_cursor: str | None = None

    async def refresh(self) -> OrderPage:
        page = await asyncio.wait_for(self.source.list_my_orders(None), timeout=self.timeout)
        self.orders = list(page.items)
        self.has_more = page.has_more
        self.next_cursor = page.next_cursor
        return page

    async def load_more(self) -> OrderPage | None:
        if not self.has_more:
            return None
        page = await asyncio.wait_for(
            self.source.list_my_orders(self.next_cursor), timeout=self.timeout
        )
        self.orders.extend(page.items)
        self.has_more = page.has_more
        self.next_cursor = page.next_cursor
        return page


class OrderSubmitter:
    """
    Serwis odpowiedzialny za utworzenie zamówienia z koszyka.
    Jedno wywolanie create_order na jedno potwierdzenie; pilnowanie
    ponownego wyslania nalezy do CheckoutWorkflow, sam serwis jest bezstanowy.
    """

    def __init__(
        self,
        source: OrderSource,
        cart: CartEngine,
        catalog: CatalogSnapshot,
        history: OrderHistory | None = None,
        notifier: Notifier | None = None,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
    ):
        self.source = source
        self.cart = cart
        self.catalog = catalog
        self.history = history
        self.notifier = notifier
        self.timeout = timeout

    async def submit(self, items: List[CartItem], context: CheckoutContext) -> SubmissionResult:
        """
        Use Case: Tworzenie zamówienia.

        1. Buduje zadanie z pozycji koszyka i danych checkoutu
        2. Wysyla je dokladnie raz
        3. Sukces: czysci koszyk, odswieza katalog i historie zamowien
        4. Porazka: koszyk i kontekst bez zmian, katalog odswiezony
        """
        method = self._payment_method(context.selected_payment_method_id)
        request = build_order_request(items, context, method)

        try:
            receipt = await asyncio.wait_for(self.source.create_order(request), timeout=self.timeout)
        except OrderRejected as e:
            logger.warning(f"Order rejected for {self.cart.identity}: {e.message}")
            return await self._failed(e.message)
        except (RemoteServiceError, asyncio.TimeoutError) as e:
            logger.error(f"Order submission failed for {self.cart.identity}: {e!r}")
            return await self._failed(
                "The order service is not responding, please try again"
            )

        logger.info(f"Order {receipt.order_id} created for {self.cart.identity}")

        try:
            # zapis do magazynu blokuje, nie na petli
            await asyncio.to_thread(self.cart.clear)
        except PersistenceFailure as e:
            # zamowienie juz istnieje, nie zglaszamy porazki
            logger.error(f"Order {receipt.order_id} placed but cart not cleared: {e}")

        await self._refresh_after_change()
        await self._notify("order_placed", f"Your order for {len(items)} product(s) was sent successfully")

        return SubmissionResult(ok=True, receipt=receipt)

    async def cancel(self, order_id: str) -> CancelResult:
        try:
            refund = await asyncio.wait_for(self.source.cancel_order(order_id), timeout=self.timeout)
        except OrderRejected as e:
            logger.warning(f"Cancel of order {order_id} rejected: {e.message}")
            return CancelResult(ok=False, order_id=order_id, reason=e.message)
        except (RemoteServiceError, asyncio.TimeoutError) as e:
            logger.error(f"Cancel of order {order_id} failed: {e!r}")
            return CancelResult(
                ok=False, order_id=order_id, reason="Could not cancel the order, please try again"
            )

        logger.info(f"Order {order_id} cancelled, refund={refund}")
        # stan wraca do puli
        await self._refresh_after_change()
        await self._notify("order_cancelled", f"Order {order_id} was cancelled")
        return CancelResult(ok=True, order_id=order_id, refund_amount=refund)

    async def _failed(self, reason: str) -> SubmissionResult:
        await self._refresh_catalog()
        await self._notify("order_failed", reason)
        return SubmissionResult(
            ok=False,
            kind=ErrorKind.SUBMISSION_FAILED,
            reason=reason,
            retryable=True,
        )

    async def _refresh_after_change(self) -> None:
        await self._refresh_catalog()
        if self.history is not None:
            try:
                await self.history.refresh()
            except (RemoteServiceError, asyncio.TimeoutError) as e:
                logger.warning(f"Order history refresh failed: {e!r}")

    async def _refresh_catalog(self) -> None:
        try:
            await self.catalog.refresh()
        except (RemoteServiceError, asyncio.TimeoutError) as e:
            logger.warning(f"Catalog refresh after order change failed: {e!r}")

    def _payment_method(self, method_id: str | None) -> PaymentMethod | None:
        for method in self.catalog.payment_methods:
            if method.id == method_id:
                return method
        return None

    async def _notify(self, kind: str, message: str) -> None:
        if self.notifier is not None and self.cart.identity is not None:
            #publikacja do brokera celery jest blokujaca
            await asyncio.to_thread(self.notifier.notify, self.cart.identity, kind, message)
