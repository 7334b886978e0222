# storefront/services/cart_service.py
from decimal import Decimal
from typing import Callable, Dict, List, Protocol

from storefront.domain.errors import ErrorKind, PersistenceFailure
from storefront.domain.schemas import (
    CartItem,
    CartLine,
    CartOutcome,
    CartResult,
    CartSummary,
    LoadResult,
)
from storefront.repos.cart_repo import CartStore, StoredItems
from storefront.services.catalog import CatalogSnapshot
from storefront.utils.logging import get_logger
from storefront.utils.settings import CART_KEY_PREFIX

logger = get_logger(__name__)


class Notifier(Protocol):
    def notify(self, identity: str, kind: str, message: str) -> None: ...


class CartEngine:
    """
    Koszyk jednej tozsamosci pilnowany wzgledem snapshotu katalogu.

    commands (load, add, decrease, set_quantity, remove, clear, reconcile)
    najpierw licza nowa zawartosc, potem ja zapisuja; stan w pamieci
    zmienia sie dopiero gdy magazyn przyjal zapis.
    query (items, total, summary) tylko odczyt.
    """

    def __init__(
        self,
        store: CartStore,
        catalog: CatalogSnapshot,
        notifier: Notifier | None = None,
        key_prefix: str = CART_KEY_PREFIX,
    ):
        self.store = store
        self.catalog = catalog
        self.notifier = notifier
        self.key_prefix = key_prefix

        self.identity: str | None = None
        self._items: Dict[str, int] = {}
        # produkty usuniete przez ostatnie uzgodnienie z katalogiem, widoczne dla listenerow
        self.last_removed: List[str] = []
        self._listeners: List[Callable[["CartEngine"], None]] = []

        catalog.subscribe(self._on_catalog_replaced)

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def key(self) -> str:
        return f"{self.key_prefix}{self._require_identity()}"

    @property
    def items(self) -> List[CartItem]:
        return [CartItem(product_id=pid, quantity=qty) for pid, qty in self._items.items()]

    @property
    def item_count(self) -> int:
        return sum(self._items.values())

    def is_empty(self) -> bool:
        return not self._items

    def quantity_of(self, product_id: str) -> int:
        return self._items.get(product_id, 0)

    def total(self) -> Decimal:
        total = Decimal("0")
        for pid, qty in self._items.items():
            product = self.catalog.resolve(pid)
            if product is not None:
                total += product.price * qty
        return total

    def summary(self) -> CartSummary:
        lines = []
        for pid, qty in self._items.items():
            product = self.catalog.resolve(pid)
            if product is None:
                continue
            lines.append(
                CartLine(
                    product_id=pid,
                    name=product.name,
                    quantity=qty,
                    price=product.price,
                    line_total=product.price * qty,
                    purchase_limit_per_buyer=product.purchase_limit_per_buyer,
                )
            )
        return CartSummary(
            identity=self.identity,
            items=lines,
            item_count=self.item_count,
            total=self.total(),
        )

    def subscribe(self, listener: Callable[["CartEngine"], None]) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[["CartEngine"], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # =====================================================
    # COMMANDS
    # =====================================================
    def load(self, identity: str) -> LoadResult:
        """
        Laduje koszyk tozsamosci z magazynu i czysci go wzgledem katalogu.
        Usuniete pozycje sa raportowane, a oczyszczony koszyk od razu zapisywany.
        """
        stored = self.store.load(f"{self.key_prefix}{identity}") or []
        self.identity = identity

        items, removed_ids, adjusted = self._sanitize(stored)
        removed = len(removed_ids)
        self._items = items
        logger.info(
            f"Loaded cart {self.key}: {len(items)} items, {removed} removed, {adjusted} adjusted"
        )

        if removed or adjusted or len(items) != len(stored):
            try:
                self._persist(items)
            except PersistenceFailure as e:
                #oczyszczenie zostanie powtorzone przy nastepnym load
                logger.warning(f"Could not write back pruned cart {self.key}: {e}")

        if removed:
            self._notify(
                ErrorKind.PRODUCT_UNAVAILABLE,
                f"{removed} item(s) were removed from your cart because they are no longer available",
            )

        self._emit()
        return LoadResult(identity=identity, removed=removed, adjusted=adjusted)

    def add(self, product_id: str, quantity: int = 1, silent: bool = False) -> CartResult:
        if quantity <= 0:
            raise ValueError("Ilosc musi byc wieksza niz 0")
        self._require_identity()

        product = self.catalog.resolve(product_id)
        if product is None:
            if not silent:
                self._notify(ErrorKind.PRODUCT_UNAVAILABLE, "This product is no longer available")
            return CartResult(
                outcome=CartOutcome.PRODUCT_UNAVAILABLE,
                product_id=product_id,
                quantity=self.quantity_of(product_id),
                message="Product is no longer available",
            )

        limit = product.purchase_limit_per_buyer
        existing = self.quantity_of(product_id)
        new_quantity = existing + quantity

        # cala operacja odrzucona, bez przycinania do limitu
        if new_quantity > limit:
            message = f"You can buy at most {limit} of {product.name or product_id}"
            logger.info(f"Limit exceeded for {product_id} in {self.key}: {new_quantity} > {limit}")
            if not silent:
                self._notify(ErrorKind.LIMIT_EXCEEDED, message)
            return CartResult(
                outcome=CartOutcome.LIMIT_EXCEEDED,
                product_id=product_id,
                quantity=existing,
                message=message,
            )

        self._commit({**self._items, product_id: new_quantity})
        logger.info(f"Product {product_id} in cart {self.key}: {existing} -> {new_quantity}")
        return CartResult(outcome=CartOutcome.OK, product_id=product_id, quantity=new_quantity)

    def decrease(self, product_id: str) -> CartResult:
        existing = self.quantity_of(product_id)
        if not existing:
            return CartResult(outcome=CartOutcome.NOT_IN_CART, product_id=product_id)

        items = dict(self._items)
        if existing <= 1:
            # wiersze z iloscia 0 sa zabronione
            del items[product_id]
        else:
            items[product_id] = existing - 1

        self._commit(items)
        return CartResult(
            outcome=CartOutcome.OK, product_id=product_id, quantity=items.get(product_id, 0)
        )

    def set_quantity(self, product_id: str, delta: int) -> CartResult:
        existing = self.quantity_of(product_id)
        if not existing:
            return CartResult(outcome=CartOutcome.NOT_IN_CART, product_id=product_id)

        product = self.catalog.resolve(product_id)
        if product is None:
            items = dict(self._items)
            del items[product_id]
            self._commit(items)
            return CartResult(
                outcome=CartOutcome.PRODUCT_UNAVAILABLE,
                product_id=product_id,
                message="Product is no longer available",
            )

        requested = existing + delta
        new_quantity = max(1, min(product.purchase_limit_per_buyer, requested))

        if new_quantity != existing:
            self._commit({**self._items, product_id: new_quantity})

        return CartResult(
            outcome=CartOutcome.OK,
            product_id=product_id,
            quantity=new_quantity,
            clamped=new_quantity != requested,
        )

    def remove(self, product_id: str) -> CartResult:
        items = dict(self._items)
        items.pop(product_id, None)
        self._commit(items)
        logger.info(f"Product {product_id} removed from cart {self.key}")
        return CartResult(outcome=CartOutcome.OK, product_id=product_id)

    def clear(self) -> None:
        # usuwa caly rekord, nie zapisuje pustej listy
        self._commit({})
        logger.info(f"Cart {self.key} cleared")

    def reconcile(self) -> int:
        """Usuwa pozycje, ktorych produkt zniknal lub wygasl. Zwraca liczbe usunietych."""
        if self.identity is None:
            return 0

        stored = [{"product_id": pid, "quantity": qty} for pid, qty in self._items.items()]
        items, removed_ids, adjusted = self._sanitize(stored)
        if not removed_ids and not adjusted:
            return 0

        self.last_removed = removed_ids
        try:
            self._commit(items)
        finally:
            self.last_removed = []

        removed = len(removed_ids)
        if removed:
            self._notify(
                ErrorKind.PRODUCT_UNAVAILABLE,
                f"{removed} item(s) were removed from your cart because they are no longer available",
            )
        return removed

    def close(self) -> None:
        """Odpina koszyk od katalogu; zapisany rekord zostaje w magazynie."""
        self.catalog.unsubscribe(self._on_catalog_replaced)
        self._listeners.clear()

    # =====================================================
    # INTERNALS
    # =====================================================
    def _require_identity(self) -> str:
        if self.identity is None:
            raise RuntimeError("Koszyk nie zostal zaladowany dla zadnej tozsamosci")
        return self.identity

    def _sanitize(self, rows: StoredItems) -> tuple[Dict[str, int], List[str], int]:
        merged: Dict[str, int] = {}
        for row in rows:
            pid = row.get("product_id")
            try:
                qty = int(row.get("quantity", 0))
            except (TypeError, ValueError):
                qty = 0
            if pid is None or qty <= 0:
                continue
            merged[str(pid)] = merged.get(str(pid), 0) + qty

        #katalog jeszcze nie pobrany, nie ma wzgledem czego czyscic
        if self.catalog.version == 0:
            return merged, [], 0

        items: Dict[str, int] = {}
        removed: List[str] = []
        adjusted = 0
        for pid, qty in merged.items():
            product = self.catalog.resolve(pid)
            if product is None:
                removed.append(pid)
                continue
            clamped = min(qty, product.purchase_limit_per_buyer)
            if clamped != qty:
                adjusted += 1
            items[pid] = clamped
        return items, removed, adjusted

    def _persist(self, items: Dict[str, int]) -> None:
        if items:
            rows = [{"product_id": pid, "quantity": qty} for pid, qty in sorted(items.items())]
            self.store.save(self.key, rows)
        else:
            self.store.delete(self.key)

    def _commit(self, items: Dict[str, int]) -> None:
        try:
            self._persist(items)
        except PersistenceFailure as e:
            # stan w pamieci zostaje na ostatnim zapisanym
            logger.error(f"Persisting cart {self.key} failed, mutation rolled back: {e}")
            raise
        self._items = items
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _notify(self, kind: ErrorKind, message: str) -> None:
        if self.notifier is not None and self.identity is not None:
            self.notifier.notify(self.identity, kind.value, message)

    def _on_catalog_replaced(self, catalog: CatalogSnapshot) -> None:
        if self.identity is None:
            return
        try:
            removed = self.reconcile()
        except PersistenceFailure as e:
            logger.warning(f"Reconcile after catalog refresh not persisted: {e}")
            removed = 0
        # ceny i stany mogly sie zmienic nawet bez usuniec
        if not removed:
            self._emit()
