# storefront/services/catalog_client.py
import asyncio
from typing import Any, Dict, List

import requests
from pydantic import ValidationError
from requests import RequestException

from storefront.domain.errors import CatalogUnavailable
from storefront.domain.schemas import PaymentMethod, Product
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import CATALOG_SERVICE_URL, HTTP_TIMEOUT_SECONDS

logger = get_logger(__name__)


def _unwrap(payload: Any) -> List[Dict[str, Any]]:
    #backend zwraca {"data": [...]} albo gola liste
    if isinstance(payload, dict):
        payload = payload.get("data", [])
    return [row for row in payload or [] if isinstance(row, dict)]


class CatalogClient:
    def __init__(self, base_url: str | None = None, timeout: float = HTTP_TIMEOUT_SECONDS):
        self.base_url = (base_url or CATALOG_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _get(self, path: str, params: Dict[str, Any] | None = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.info(f"CatalogClient GET {url}")

        resp = requests.get(url, params=params, timeout=self.timeout)
        if resp.status_code != 404:
            resp.raise_for_status()
        return resp

    def fetch_products(self, filters: Dict[str, Any] | None = None) -> List[Product]:
        try:
            resp = self._get("/products", params=filters)
            resp.raise_for_status()
            rows = _unwrap(resp.json())
        except (RequestException, ValueError) as e:
            raise CatalogUnavailable(f"Nie udalo sie pobrac katalogu: {e}") from e

        products = []
        for row in rows:
            try:
                products.append(Product.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed product {row.get('id')}: {e}")
        return products

    def fetch_product(self, product_id: str) -> Product | None:
        try:
            resp = self._get(f"/products/{product_id}")
            if resp.status_code == 404:
                return None
            data = resp.json()
        except (RequestException, ValueError) as e:
            raise CatalogUnavailable(f"Nie udalo sie pobrac produktu {product_id}: {e}") from e

        if isinstance(data, dict) and "data" in data:
            data = data["data"]
        return Product.model_validate(data)

    def fetch_payment_methods(self) -> List[PaymentMethod]:
        try:
            resp = self._get("/payment-methods")
            resp.raise_for_status()
            rows = _unwrap(resp.json())
        except (RequestException, ValueError) as e:
            raise CatalogUnavailable(f"Nie udalo sie pobrac metod platnosci: {e}") from e
        return [PaymentMethod.model_validate(row) for row in rows]

    # async, blokujace requests idzie do watku zeby nie blokowac petli
    async def list_products(self, filters: Dict[str, Any] | None = None) -> List[Product]:
        return await asyncio.to_thread(self.fetch_products, filters)

    async def get_product(self, product_id: str) -> Product | None:
        return await asyncio.to_thread(self.fetch_product, product_id)

    async def list_payment_methods(self) -> List[PaymentMethod]:
        return await asyncio.to_thread(self.fetch_payment_methods)
