#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import Storefront, get_storefront
from storefront.domain.errors import PersistenceFailure
from storefront.domain.schemas import CartResult, CartSummary, ItemIn, QuantityDeltaIn

router = APIRouter(prefix="/carts", tags=["carts"])

# handlery synchroniczne: FastAPI uruchamia je w threadpoolu, bo magazyn koszyka blokuje


def get_cart(storefront: Storefront, identity: str):
    try:
        return storefront.session(identity).cart
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{identity}", response_model=CartSummary)
def get_summary(identity: str, storefront: Storefront = Depends(get_storefront)):
    return get_cart(storefront, identity).summary()


@router.post("/{identity}/items", response_model=CartResult)
def add_item(
    identity: str,
    payload: ItemIn,
    storefront: Storefront = Depends(get_storefront),
):
    cart = get_cart(storefront, identity)
    try:
        return cart.add(payload.product_id, payload.quantity, silent=payload.silent)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/{identity}/items/{product_id}/decrease", response_model=CartResult)
def decrease_item(
    identity: str,
    product_id: str,
    storefront: Storefront = Depends(get_storefront),
):
    cart = get_cart(storefront, identity)
    try:
        return cart.decrease(product_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.patch("/{identity}/items/{product_id}", response_model=CartResult)
def update_quantity(
    identity: str,
    product_id: str,
    payload: QuantityDeltaIn,
    storefront: Storefront = Depends(get_storefront),
):
    cart = get_cart(storefront, identity)
    try:
        return cart.set_quantity(product_id, payload.delta)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.delete("/{identity}/items/{product_id}", response_model=CartResult)
def remove_item(
    identity: str,
    product_id: str,
    storefront: Storefront = Depends(get_storefront),
):
    cart = get_cart(storefront, identity)
    try:
        return cart.remove(product_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.delete("/{identity}", status_code=204)
def clear_cart(identity: str, storefront: Storefront = Depends(get_storefront)):
    cart = get_cart(storefront, identity)
    try:
        cart.clear()
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
