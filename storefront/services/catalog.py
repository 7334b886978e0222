# storefront/services/catalog.py
import asyncio
import threading
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Protocol, Tuple

from storefront.domain.errors import CatalogUnavailable
from storefront.domain.schemas import PaymentMethod, Product
from storefront.utils.logging import get_logger
from storefront.utils.sequencing import RequestSequencer
from storefront.utils.settings import REMOTE_TIMEOUT_SECONDS

logger = get_logger(__name__)


class CatalogSource(Protocol):
    async def list_products(self, filters: Dict[str, Any] | None = None) -> List[Product]: ...

    async def list_payment_methods(self) -> List[PaymentMethod]: ...


class CatalogSnapshot:
    """
    Widok katalogu tylko do odczytu, wspoldzielony przez wszystkie komponenty.

    Produkty i metody platnosci sa podmieniane razem jednym przypisaniem
    niezmiennej krotki, wiec czytelnik nigdy nie widzi polowicznego snapshotu.
    Odswiezenie starsze niz ostatnio wyslane jest odrzucane.
    """

    def __init__(
        self,
        source: CatalogSource | None = None,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.source = source
        self.timeout = timeout
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._state: Tuple[Mapping[str, Product], Tuple[PaymentMethod, ...]] = (
            MappingProxyType({}),
            (),
        )
        self._refreshes = RequestSequencer()
        self._swap_lock = threading.Lock()
        self._listeners: List[Callable[["CatalogSnapshot"], None]] = []
        self.version = 0
        self.fetched_at: datetime | None = None

    @property
    def products(self) -> Mapping[str, Product]:
        return self._state[0]

    @property
    def payment_methods(self) -> Tuple[PaymentMethod, ...]:
        return self._state[1]

    @property
    def active_payment_methods(self) -> List[PaymentMethod]:
        return [m for m in self.payment_methods if m.is_active]

    def get(self, product_id: str) -> Product | None:
        return self.products.get(product_id)

    def resolve(self, product_id: str) -> Product | None:
        """Produkt do kupienia: obecny w snapshocie i nie po terminie."""
        product = self.products.get(product_id)
        if product is None or product.is_expired(self.clock()):
            return None
        return product

    def subscribe(self, listener: Callable[["CatalogSnapshot"], None]) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[["CatalogSnapshot"], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def replace(
        self,
        products: Iterable[Product],
        payment_methods: Iterable[PaymentMethod] | None = None,
    ) -> None:
        methods = self.payment_methods if payment_methods is None else tuple(payment_methods)
        self._state = (MappingProxyType({p.id: p for p in products}), methods)
        self.version += 1
        self.fetched_at = self.clock()

        logger.info(
            f"Catalog snapshot v{self.version}: {len(self.products)} products, "
            f"{len(methods)} payment methods"
        )

        for listener in list(self._listeners):
            listener(self)

    async def refresh(self, filters: Dict[str, Any] | None = None) -> bool:
        """
        Pobiera swiezy katalog. Zwraca False gdy w miedzyczasie wyslano
        nowsze odswiezenie i ta odpowiedz zostala odrzucona.
        """
        if self.source is None:
            raise CatalogUnavailable("Brak zrodla katalogu")

        generation = self._refreshes.issue()
        try:
            products, methods = await asyncio.wait_for(
                asyncio.gather(
                    self.source.list_products(filters),
                    self.source.list_payment_methods(),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise CatalogUnavailable("Timeout podczas pobierania katalogu") from e

        # listenery (koszyki) zapisuja do magazynu, wiec podmiana idzie poza petla
        applied = await asyncio.to_thread(self._apply, generation, products, methods)
        if not applied:
            logger.info(f"Dropping stale catalog refresh #{generation}")
        return applied

    def _apply(self, generation: int, products: List[Product], methods: List[PaymentMethod]) -> bool:
        with self._swap_lock:
            if not self._refreshes.is_current(generation):
                return False
            self.replace(products, methods)
            return True
