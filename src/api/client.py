"""Async HTTP client for the storefront API, used by front ends and scripts."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

import httpx

from api.auth import EMAIL_HEADER, ROLE_HEADER, USER_ID_HEADER
from db.models import PAYMENT_COD, Principal, Product
from utils.logger import get_logger
from utils.state import CartState

_logger = get_logger(__name__)


class CheckoutFailed(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return fallback


class StorefrontClient:
    """
    Talks to the storefront API on behalf of one signed-in principal.

    Identity travels in the gateway headers the API trusts; in production
    the authenticating gateway sets them instead.
    """

    def __init__(
        self,
        base_url: str,
        principal: Optional[Principal] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        headers: Dict[str, str] = {}
        if principal is not None:
            headers[USER_ID_HEADER] = principal.user_id
            if principal.email:
                headers[EMAIL_HEADER] = principal.email
            if principal.role:
                headers[ROLE_HEADER] = principal.role
        self._http = httpx.AsyncClient(
            base_url=base_url, headers=headers, transport=transport, timeout=timeout
        )

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_products(self) -> List[Product]:
        response = await self._http.get("/products")
        response.raise_for_status()
        return [
            Product(
                id=int(p["id"]),
                name=p["name"],
                category=p["category"],
                price=Decimal(str(p["price"])),
                stock=int(p["stock"]),
                description=p["description"],
                image_url=p["image_url"],
            )
            for p in response.json()
        ]

    async def checkout(
        self, cart: CartState, address: str, payment_method: str = PAYMENT_COD
    ) -> dict:
        """
        Submit the cart. On success the cart is cleared and the server's
        confirmation returned; on any failure the cart is left as it was and
        CheckoutFailed carries the server's message.
        """
        payload = {
            "items": [
                {"id": line.product_id, "quantity": line.quantity}
                for line in cart.lines()
            ],
            "address": address,
            "paymentMethod": payment_method,
        }
        try:
            response = await self._http.post("/orders", json=payload)
        except httpx.HTTPError as e:
            raise CheckoutFailed(f"Order failed: {e}") from e
        if response.status_code != 201:
            raise CheckoutFailed(
                _error_message(response, "Order failed"), response.status_code
            )
        cart.clear()
        return response.json()

    async def my_orders(self) -> List[dict]:
        response = await self._http.get("/api/orders/me")
        response.raise_for_status()
        return response.json()

    async def sync_profile(self) -> bool:
        """Best-effort registry sync after sign-in; never raises."""
        try:
            response = await self._http.post("/api/me/sync")
        except httpx.HTTPError as e:
            _logger.warning(f"Profile sync failed: {e}")
            return False
        if response.is_error:
            _logger.warning(
                f"Profile sync rejected ({response.status_code}): "
                f"{_error_message(response, 'unknown error')}"
            )
            return False
        return True
