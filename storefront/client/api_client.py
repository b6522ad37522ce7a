from typing import Dict, Optional

import httpx

from storefront.client.session import SessionProvider
from storefront.config import settings
from storefront.errors import CartApiError, error_from_payload
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartApiClient:
    """
    Async transport for the cart, inventory and checkout endpoints.

    Error responses come back as storefront exceptions; network failures and
    5xx responses come back as CartApiError, the only error worth retrying.
    """

    def __init__(
        self,
        session: SessionProvider,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 5.0,
    ):
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.API_BASE_URL).rstrip("/"),
            transport=transport,
            timeout=timeout,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        user_id = self.session.current_user_id()
        return {"X-User-Id": user_id} if user_id else {}

    async def _request(self, method: str, path: str, **kwargs):
        logger.debug(f"CartApiClient {method} {path}")
        try:
            resp = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise CartApiError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 500:
            raise CartApiError(f"{method} {path} returned {resp.status_code}", resp.status_code)
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail")
            except ValueError:
                detail = None
            if isinstance(detail, dict):
                raise error_from_payload(detail, resp.status_code)
            raise CartApiError(str(detail or resp.reason_phrase), resp.status_code)
        return resp.json()

    # ---- cart ----

    async def get_cart(self) -> Dict:
        return await self._request("GET", "/api/cart")

    async def add_to_cart(self, product_id: int, quantity: int = 1, variant_id: Optional[int] = None) -> Dict:
        return await self._request(
            "POST",
            "/api/cart/items",
            json={"product_id": product_id, "variant_id": variant_id, "quantity": quantity},
        )

    async def remove_from_cart(self, product_id: int, quantity: int = 1, variant_id: Optional[int] = None) -> Dict:
        return await self._request(
            "POST",
            "/api/cart/items/remove",
            json={"product_id": product_id, "variant_id": variant_id, "quantity": quantity},
        )

    async def validate_inventory(self) -> Dict:
        return await self._request("GET", "/api/cart/validate")

    # ---- inventory ----

    async def get_availability(self, product_id: int, variant_id: Optional[int] = None) -> int:
        params = {"variant_id": variant_id} if variant_id is not None else None
        data = await self._request("GET", f"/api/inventory/{product_id}", params=params)
        return int(data["available_quantity"])

    # ---- checkout ----

    async def initialize_checkout(self) -> Dict:
        return await self._request("POST", "/api/checkout/initialize")

    async def process_payment(self, shipping_address_id: int, method: str, details: Optional[Dict] = None) -> Dict:
        return await self._request(
            "POST",
            "/api/checkout/pay",
            json={
                "shipping_address_id": shipping_address_id,
                "method": method,
                "details": details or {},
            },
        )
