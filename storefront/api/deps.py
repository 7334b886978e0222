# storefront/api/deps.py
import asyncio
import threading
from collections import OrderedDict
from typing import Callable

from fastapi import Request
from fastapi.concurrency import run_in_threadpool

from storefront.domain.errors import PersistenceFailure
from storefront.repos.cart_repo import CartStore, InMemoryCartStore, SqlCartStore
from storefront.repos.redis_cart_repo import RedisCartStore
from storefront.services.cart_service import CartEngine, Notifier
from storefront.services.catalog import CatalogSnapshot, CatalogSource
from storefront.services.catalog_client import CatalogClient
from storefront.services.checkout_service import CheckoutWorkflow
from storefront.services.notification_service import NotificationService
from storefront.services.order_client import OrderClient
from storefront.services.order_service import OrderHistory, OrderSource, OrderSubmitter
from storefront.services.shipping_client import ShippingClient
from storefront.services.shipping_service import ShippingCostResolver, ShippingSource
from storefront.utils.logging import get_logger
from storefront.utils.settings import (
    CART_STORE_BACKEND,
    SESSION_CACHE_SIZE,
    SHIPPING_DEBOUNCE_SECONDS,
)

logger = get_logger(__name__)


def build_cart_store(backend: str = CART_STORE_BACKEND) -> CartStore:
    if backend == "redis":
        return RedisCartStore()
    if backend == "memory":
        return InMemoryCartStore()
    if backend == "sql":
        return SqlCartStore()
    raise ValueError(f"Nieznany backend koszyka: {backend}")


class StorefrontSession:
    """Komponenty jednej tozsamosci: koszyk, wysylka, historia, checkout."""

    def __init__(self, identity: str, storefront: "Storefront"):
        self.identity = identity
        order_client = storefront.order_client_factory(identity)

        self.cart = CartEngine(storefront.store, storefront.catalog, storefront.notifier)
        self.shipping = ShippingCostResolver(
            storefront.shipping_client,
            debounce_seconds=storefront.debounce_seconds,
            loop=storefront.loop,
        )
        self.history = OrderHistory(order_client)
        self.submitter = OrderSubmitter(
            order_client,
            self.cart,
            storefront.catalog,
            history=self.history,
            notifier=storefront.notifier,
        )
        self.workflow = CheckoutWorkflow(
            self.cart,
            storefront.catalog,
            self.shipping,
            self.submitter,
        )
        try:
            self.cart.load(identity)
        except PersistenceFailure:
            self.close()
            raise

    def close(self) -> None:
        self.workflow.close()
        self.cart.close()


class Storefront:
    def __init__(
        self,
        catalog_client: CatalogSource | None = None,
        shipping_client: ShippingSource | None = None,
        order_client_factory: Callable[[str], OrderSource] | None = None,
        store: CartStore | None = None,
        notifier: Notifier | None = None,
        debounce_seconds: float = SHIPPING_DEBOUNCE_SECONDS,
        max_sessions: int = SESSION_CACHE_SIZE,
    ):
        self.catalog = CatalogSnapshot(catalog_client or CatalogClient())
        self.shipping_client = shipping_client or ShippingClient()
        self.order_client_factory = order_client_factory or (
            lambda identity: OrderClient(identity=identity)
        )
        self.store = store if store is not None else build_cart_store()
        self.notifier = notifier if notifier is not None else NotificationService()
        self.debounce_seconds = debounce_seconds
        self.max_sessions = max_sessions
        # petla aplikacji, ustawiana w lifespan; resolvery wysylki planuja na niej wyceny
        self.loop: asyncio.AbstractEventLoop | None = None
        self.sessions: "OrderedDict[str, StorefrontSession]" = OrderedDict()
        self._lock = threading.Lock()

    def session(self, identity: str) -> StorefrontSession:
        """
        Sesja tozsamosci, tworzona przy pierwszym uzyciu. Wolane z watku
        roboczego: ladowanie koszyka czyta magazyn.
        """
        # koszyki nie sa wspoldzielone miedzy tozsamosciami
        with self._lock:
            session = self.sessions.get(identity)
            if session is not None:
                self.sessions.move_to_end(identity)
                return session

            logger.info(f"Opening storefront session for {identity}")
            session = StorefrontSession(identity, self)
            self.sessions[identity] = session
            self._evict_idle(keep=identity)
            return session

    def _evict_idle(self, keep: str) -> None:
        # od najdawniej uzywanej; sesja z zamowieniem w drodze zostaje
        for identity in list(self.sessions):
            if len(self.sessions) <= self.max_sessions:
                return
            session = self.sessions[identity]
            if identity == keep or session.workflow.is_submitting:
                continue
            del self.sessions[identity]
            session.close()
            logger.info(f"Evicted idle storefront session for {identity}")


async def open_session(storefront: Storefront, identity: str) -> StorefrontSession:
    return await run_in_threadpool(storefront.session, identity)


def get_storefront(request: Request) -> Storefront:
    return request.app.state.storefront
