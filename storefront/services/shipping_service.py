# storefront/services/shipping_service.py
import asyncio
from decimal import Decimal
from typing import Callable, Iterable, List, Protocol, Set, Tuple

from storefront.domain.errors import RemoteServiceError
from storefront.domain.schemas import CartItem, DeliveryMethod, ShippingQuote
from storefront.utils.logging import get_logger
from storefront.utils.sequencing import RequestSequencer
from storefront.utils.settings import REMOTE_TIMEOUT_SECONDS, SHIPPING_DEBOUNCE_SECONDS

logger = get_logger(__name__)

ItemsSnapshot = Tuple[Tuple[str, int], ...]


class ShippingSource(Protocol):
    async def calculate_shipping(self, items: ItemsSnapshot, city: str) -> Decimal: ...


class ShippingCostResolver:
    """
    Koszt wysylki dla biezacego koszyka, miasta i sposobu dostawy.

    -debounce: seria zmian w oknie debounce_seconds daje jedno zadanie z koncowym stanem
    -kazde zadanie ma numer generacji, odpowiedz starszej generacji jest odrzucana
    -blad albo timeout zostawia poprzedni koszt i zapisuje error do ponowienia
    -odbior osobisty to zawsze 0, bez wywolania zdalnego
    -request i cancel wolane z watku roboczego sa przenoszone na petle resolvera
    """

    def __init__(
        self,
        source: ShippingSource,
        debounce_seconds: float = SHIPPING_DEBOUNCE_SECONDS,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.source = source
        self.debounce_seconds = debounce_seconds
        self.timeout = timeout
        self._loop = loop

        self.cost = Decimal("0")  # ostatni koszt wysylki przyjety z serwisu
        self.resolved = False
        self.error: str | None = None
        self.delivery_method = DeliveryMethod.SHIPPING

        self._sequencer = RequestSequencer()
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._last_request: Tuple[ItemsSnapshot, str] | None = None
        self._listeners: List[Callable[[ShippingQuote], None]] = []

    @property
    def pending(self) -> bool:
        return not self._idle.is_set()

    @property
    def quote(self) -> ShippingQuote:
        if self.delivery_method == DeliveryMethod.PICKUP:
            return ShippingQuote(cost=Decimal("0"), resolved=True, pending=False)
        return ShippingQuote(
            cost=self.cost,
            resolved=self.resolved,
            pending=self.pending,
            error=self.error,
        )

    def subscribe(self, listener: Callable[[ShippingQuote], None]) -> None:
        self._listeners.append(listener)

    def request(
        self,
        items: Iterable[CartItem],
        city: str,
        delivery_method: DeliveryMethod,
    ) -> None:
        """Planuje przeliczenie na petli resolvera."""
        if self._defer(self.request, list(items), city, delivery_method):
            return
        self.delivery_method = delivery_method
        self._cancel_timer()
        # kazde nowe wejscie unieważnia odpowiedzi, ktore sa jeszcze w drodze
        generation = self._sequencer.issue()

        if delivery_method == DeliveryMethod.PICKUP:
            self.error = None
            self._update_idle()
            self._emit()
            return

        snapshot = tuple(sorted((item.product_id, item.quantity) for item in items))
        if not snapshot:
            self.cost = Decimal("0")
            self.error = None
            self._update_idle()
            self._emit()
            return

        self._last_request = (snapshot, city)
        self._idle.clear()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._fire, generation, snapshot, city)

    async def resolve(
        self,
        items: Iterable[CartItem],
        city: str,
        delivery_method: DeliveryMethod,
    ) -> ShippingQuote:
        self.request(items, city, delivery_method)
        return await self.settle()

    async def settle(self) -> ShippingQuote:
        """Czeka az nie bedzie zaplanowanych ani trwajacych wycen."""
        await self._idle.wait()
        return self.quote

    def retry(self) -> bool:
        if self._last_request is None or self.delivery_method == DeliveryMethod.PICKUP:
            return False
        snapshot, city = self._last_request
        items = [CartItem(product_id=pid, quantity=qty) for pid, qty in snapshot]
        self.request(items, city, self.delivery_method)
        return True

    def cancel(self) -> None:
        if self._loop is None and self._timer is None and not self._tasks:
            # nic nie bylo jeszcze zaplanowane
            self._sequencer.invalidate()
            return
        if self._defer(self.cancel):
            return
        self._cancel_timer()
        self._sequencer.invalidate()
        self._update_idle()

    # =====================================================
    # INTERNALS
    # =====================================================
    def _defer(self, callback: Callable[..., None], *args) -> bool:
        """True gdy wywolanie poszlo na petle resolvera, bo biezacy watek jej nie ma."""
        try:
            self._loop = asyncio.get_running_loop()
            return False
        except RuntimeError:
            pass
        if self._loop is None:
            raise RuntimeError("ShippingCostResolver nie ma petli asyncio")
        self._loop.call_soon_threadsafe(callback, *args)
        return True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int, items: ItemsSnapshot, city: str) -> None:
        task = asyncio.get_running_loop().create_task(self._fetch(generation, items, city))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        self._timer = None

    async def _fetch(self, generation: int, items: ItemsSnapshot, city: str) -> None:
        logger.info(f"Shipping quote #{generation} for {len(items)} items to {city}")
        try:
            cost = await asyncio.wait_for(
                self.source.calculate_shipping(items, city),
                timeout=self.timeout,
            )
        except (RemoteServiceError, asyncio.TimeoutError) as e:
            if not self._sequencer.is_current(generation):
                return
            self.error = str(e) or "Shipping calculation timed out"
            logger.warning(f"Shipping quote #{generation} failed, keeping cost {self.cost}: {self.error}")
            self._emit()
            return

        if not self._sequencer.is_current(generation):
            logger.info(f"Dropping stale shipping quote #{generation}")
            return

        self.cost = Decimal(cost)
        self.resolved = True
        self.error = None
        logger.info(f"Shipping quote #{generation} applied: {self.cost}")
        self._emit()

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Shipping quote task crashed: {task.exception()!r}")
        self._update_idle()

    def _update_idle(self) -> None:
        if self._timer is None and not self._tasks:
            self._idle.set()

    def _emit(self) -> None:
        quote = self.quote
        for listener in list(self._listeners):
            listener(quote)
