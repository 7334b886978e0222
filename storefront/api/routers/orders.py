# storefront/api/routers/orders.py
import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query

from storefront.api.deps import Storefront, get_storefront, open_session
from storefront.domain.errors import PersistenceFailure, RemoteServiceError
from storefront.domain.schemas import CancelResult, OrderPage

router = APIRouter(prefix="/orders", tags=["orders"])


async def get_session(storefront: Storefront, identity: str):
    try:
        return await open_session(storefront, identity)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{identity}", response_model=OrderPage)
async def list_orders(
    identity: str,
    more: bool = Query(False),
    storefront: Storefront = Depends(get_storefront),
):
    """
    Historia zamowien. more=true dociaga nastepna strone.
    """
    history = (await get_session(storefront, identity)).history
    try:
        if more:
            await history.load_more()
        else:
            await history.refresh()
    except (RemoteServiceError, asyncio.TimeoutError) as e:
        raise HTTPException(status_code=503, detail=str(e) or "Order service timeout")

    return OrderPage(items=history.orders, has_more=history.has_more, next_cursor=history.next_cursor)


@router.post("/{identity}/{order_id}/cancel", response_model=CancelResult)
async def cancel_order(
    identity: str,
    order_id: str,
    storefront: Storefront = Depends(get_storefront),
):
    session = await get_session(storefront, identity)
    return await session.submitter.cancel(order_id)
