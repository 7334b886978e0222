#storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import Storefront, get_storefront, open_session
from storefront.domain.errors import PersistenceFailure
from storefront.domain.schemas import CheckoutOut, CheckoutUpdateIn, ConfirmOut, TransitionResult

router = APIRouter(prefix="/checkout", tags=["checkout"])


async def get_workflow(storefront: Storefront, identity: str):
    try:
        session = await open_session(storefront, identity)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return session.workflow


@router.post("/{identity}/open", response_model=CheckoutOut)
async def open_checkout(identity: str, storefront: Storefront = Depends(get_storefront)):
    workflow = await get_workflow(storefront, identity)
    workflow.open()
    return workflow.state()


@router.post("/{identity}/close", response_model=CheckoutOut)
async def close_checkout(identity: str, storefront: Storefront = Depends(get_storefront)):
    workflow = await get_workflow(storefront, identity)
    workflow.close()
    return workflow.state()


@router.get("/{identity}", response_model=CheckoutOut)
async def get_checkout(identity: str, storefront: Storefront = Depends(get_storefront)):
    workflow = await get_workflow(storefront, identity)
    return workflow.state()


@router.patch("/{identity}", response_model=CheckoutOut)
async def update_checkout(
    identity: str,
    payload: CheckoutUpdateIn,
    storefront: Storefront = Depends(get_storefront),
):
    workflow = await get_workflow(storefront, identity)
    try:
        workflow.update(**payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return workflow.state()


@router.post("/{identity}/next", response_model=TransitionResult)
async def next_step(identity: str, storefront: Storefront = Depends(get_storefront)):
    workflow = await get_workflow(storefront, identity)
    return workflow.next()


@router.post("/{identity}/back", response_model=TransitionResult)
async def previous_step(identity: str, storefront: Storefront = Depends(get_storefront)):
    workflow = await get_workflow(storefront, identity)
    return workflow.back()


@router.post("/{identity}/shipping/retry", response_model=CheckoutOut)
async def retry_shipping(identity: str, storefront: Storefront = Depends(get_storefront)):
    workflow = await get_workflow(storefront, identity)
    workflow.shipping.retry()
    return workflow.state()


@router.post("/{identity}/confirm", response_model=ConfirmOut)
async def confirm_order(identity: str, storefront: Storefront = Depends(get_storefront)):
    """
    Wysyla zamowienie. Drugie potwierdzenie w trakcie wysylki
    jest odrzucane, a nie wysylane ponownie.
    """
    workflow = await get_workflow(storefront, identity)
    return await workflow.confirm()
