# storefront/services/order_client.py
import asyncio
from decimal import Decimal
from typing import Any, Dict

import requests
from requests import RequestException

from storefront.domain.errors import OrderRejected, OrderServiceUnavailable
from storefront.domain.schemas import OrderPage, OrderReceipt, OrderRequest
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import HTTP_TIMEOUT_SECONDS, ORDER_SERVICE_URL

logger = get_logger(__name__)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)


class OrderClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        identity: str | None = None,
    ):
        self.base_url = (base_url or ORDER_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        #tozsamosc od identity providera, backend przypisuje po niej zamowienia
        self.headers = {"X-Identity": identity} if identity else {}

    def _post_once(self, path: str, payload: Dict[str, Any] | None = None) -> Dict[str, Any]:
        # bez retry: tworzenie i anulowanie zamowienia nie sa idempotentne
        url = f"{self.base_url}{path}"
        logger.info(f"OrderClient POST {url}")
        try:
            resp = requests.post(url, json=payload, headers=self.headers, timeout=self.timeout)
        except RequestException as e:
            raise OrderServiceUnavailable(f"Serwis zamowien niedostepny: {e}") from e

        if 400 <= resp.status_code < 500:
            raise OrderRejected(_error_message(resp), status_code=resp.status_code)
        if resp.status_code >= 500:
            raise OrderServiceUnavailable(_error_message(resp))

        try:
            body = resp.json()
        except ValueError as e:
            raise OrderServiceUnavailable(f"Niepoprawna odpowiedz serwisu zamowien: {e}") from e
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return body

    @http_retry()
    def _get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.info(f"OrderClient GET {url}")

        resp = requests.get(url, params=params, headers=self.headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def post_order(self, request: OrderRequest) -> OrderReceipt:
        body = self._post_once("/orders", request.model_dump(mode="json", exclude_none=True))
        return OrderReceipt.model_validate(body)

    def post_cancel(self, order_id: str) -> Decimal | None:
        body = self._post_once(f"/orders/{order_id}/cancel")
        refund = body.get("refund_amount") if isinstance(body, dict) else None
        return Decimal(str(refund)) if refund is not None else None

    def fetch_orders(self, cursor: str | None = None) -> OrderPage:
        params = {"cursor": cursor} if cursor else None
        try:
            body = self._get("/orders", params=params)
        except (RequestException, ValueError) as e:
            raise OrderServiceUnavailable(f"Nie udalo sie pobrac zamowien: {e}") from e
        return OrderPage(
            items=body.get("items") or body.get("data") or [],
            has_more=bool(body.get("has_more", False)),
            next_cursor=body.get("next_cursor"),
        )

    async def create_order(self, request: OrderRequest) -> OrderReceipt:
        return await asyncio.to_thread(self.post_order, request)

    async def cancel_order(self, order_id: str) -> Decimal | None:
        return await asyncio.to_thread(self.post_cancel, order_id)

    async def list_my_orders(self, cursor: str | None = None) -> OrderPage:
        return await asyncio.to_thread(self.fetch_orders, cursor)
