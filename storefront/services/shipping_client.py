# storefront/services/shipping_client.py
import asyncio
from decimal import Decimal, InvalidOperation
from typing import Iterable, Tuple

import requests
from requests import RequestException

from storefront.domain.errors import ShippingCalculationFailed
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import HTTP_TIMEOUT_SECONDS, SHIPPING_SERVICE_URL

logger = get_logger(__name__)


class ShippingClient:
    def __init__(self, base_url: str | None = None, timeout: float = HTTP_TIMEOUT_SECONDS):
        self.base_url = (base_url or SHIPPING_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    #wycena nie zmienia stanu, wiec retry jest bezpieczny
    @http_retry()
    def _post_calculate(self, payload: dict) -> dict:
        url = f"{self.base_url}/shipping/calculate"
        logger.info(f"ShippingClient POST {url} city={payload['city']}")

        resp = requests.post(url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def fetch_cost(self, items: Iterable[Tuple[str, int]], city: str) -> Decimal:
        payload = {
            "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
            "city": city,
        }
        try:
            data = self._post_calculate(payload)
            return Decimal(str(data["cost"]))
        except (RequestException, ValueError, KeyError, TypeError, InvalidOperation) as e:
            raise ShippingCalculationFailed(f"Nie udalo sie obliczyc kosztu wysylki: {e}") from e

    async def calculate_shipping(self, items: Iterable[Tuple[str, int]], city: str) -> Decimal:
        return await asyncio.to_thread(self.fetch_cost, list(items), city)
