# storefront/api/routers/catalog.py
import asyncio

from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import Storefront, get_storefront
from storefront.domain.errors import RemoteServiceError

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.post("/refresh")
async def refresh_catalog(storefront: Storefront = Depends(get_storefront)):
    try:
        applied = await storefront.catalog.refresh()
    except (RemoteServiceError, asyncio.TimeoutError) as e:
        raise HTTPException(status_code=503, detail=str(e) or "Catalog service timeout")

    return {
        "applied": applied,
        "version": storefront.catalog.version,
        "products": len(storefront.catalog.products),
    }
