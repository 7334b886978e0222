# storefront/services/eligibility.py
from typing import Iterable, List

from storefront.domain.schemas import CartItem, PaymentMethod
from storefront.services.catalog import CatalogSnapshot


def eligible_payment_methods(
    items: Iterable[CartItem],
    catalog: CatalogSnapshot,
    payment_methods: Iterable[PaymentMethod],
) -> List[PaymentMethod]:
    """
    Metody platnosci wspolne dla calego koszyka.

    Metoda przechodzi, gdy kazda pozycja albo nie ma ograniczen,
    albo jawnie ja dopuszcza. Pusty koszyk = wszystkie aktywne metody.
    Kolejnosc metod jak w ustawieniach sklepu.
    """
    active = [m for m in payment_methods if m.is_active]

    products = []
    for item in items:
        product = catalog.resolve(item.product_id)
        # pozycje nierozwiazywalne i tak zostana usuniete z koszyka
        if product is not None:
            products.append(product)

    return [m for m in active if all(p.allows_payment_method(m.id) for p in products)]


def has_payment_conflict(
    eligible: List[PaymentMethod], payment_methods: Iterable[PaymentMethod]
) -> bool:
    """Pusta czesc wspolna mimo aktywnych metod: produkty wymagaja roznych platnosci."""
    return not eligible and any(m.is_active for m in payment_methods)
