"""
Clients sortants vers les services Produit (inventaire), Panier et Utilisateur.

- Un appel HTTP par opération, Bearer propagé, timeout borné (Settings.service_timeout).
- Dépendances « dures » (reserve_stock, get_user_details):
  toute réponse non-2xx, timeout ou erreur réseau lève UpstreamError(message, remote_status).
- Opérations « best-effort » (confirm_reservation, cancel_reservation, clear_cart):
  journalisent l'échec et retournent False, sans jamais lever.
- Aucun état conservé entre deux appels.
"""
from typing import Any, Dict, List, Optional
import logging

import httpx

from order_service.config import Settings
from order_service.errors import UpstreamError

logger = logging.getLogger(__name__)

StockItems = List[Dict[str, Any]]


def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}

def _remote_message(resp: httpx.Response, fallback: str) -> str:
    """Message d'erreur du service distant ({"error": ...} ou {"message": ...}) si présent."""
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        msg = body.get("error") or body.get("message")
        if isinstance(msg, dict):
            msg = msg.get("message")
        if msg:
            return str(msg)
    return fallback


# module order_service.clients.service_clients
class ServiceClients:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        # transport injectable: httpx.MockTransport en tests
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.service_timeout, transport=self._transport)

    async def _call(
        self,
        method: str,
        url: str,
        token: str,
        failure_message: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Émet l'appel et traduit tout échec en UpstreamError."""
        try:
            async with self._client() as client:
                resp = await client.request(method, url, json=json, headers=_auth_headers(token))
        except httpx.TimeoutException as e:
            raise UpstreamError(f"{failure_message} (timeout)") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{failure_message} ({e.__class__.__name__})") from e
        if not resp.is_success:
            raise UpstreamError(_remote_message(resp, failure_message), remote_status=resp.status_code)
        return resp

    # --- Produit / inventaire ---
    async def reserve_stock(self, items: StockItems, token: str) -> Dict[str, Any]:
        url = f"{self._settings.product_service_url}/api/v1/products/internal/reserve"
        try:
            resp = await self._call("POST", url, token, "Failed to reserve product stock", json={"items": items})
        except UpstreamError as e:
            logger.error("clients.reserve_stock failed status=%s message=%s", e.remote_status, e.message)
            raise
        return resp.json() if resp.content else {}

    async def confirm_reservation(self, reservation_id: str, items: StockItems, token: str) -> bool:
        url = f"{self._settings.product_service_url}/api/v1/products/internal/confirm-reservation/{reservation_id}"
        try:
            await self._call("POST", url, token, "Failed to confirm product reservation", json={"items": items})
            return True
        except UpstreamError as e:
            logger.error("clients.confirm_reservation failed reservation=%s status=%s message=%s",
                         reservation_id, e.remote_status, e.message)
            return False

    async def cancel_reservation(self, reservation_id: str, items: StockItems, token: str) -> bool:
        url = f"{self._settings.product_service_url}/api/v1/products/internal/reservation/{reservation_id}"
        try:
            await self._call("DELETE", url, token, "Failed to cancel product reservation", json={"items": items})
            return True
        except UpstreamError as e:
            logger.error("clients.cancel_reservation failed reservation=%s status=%s message=%s",
                         reservation_id, e.remote_status, e.message)
            return False

    # --- Panier ---
    async def clear_cart(self, token: str) -> bool:
        url = f"{self._settings.cart_service_url}/api/v1/cart/clear"
        try:
            await self._call("DELETE", url, token, "Failed to clear user cart")
            return True
        except UpstreamError as e:
            logger.error("clients.clear_cart failed status=%s message=%s", e.remote_status, e.message)
            return False

    # --- Utilisateur ---
    async def get_user_details(self, user_id: str, token: str) -> Dict[str, Any]:
        url = f"{self._settings.user_service_url}/api/v1/user/{user_id}"
        try:
            resp = await self._call("GET", url, token, "Failed to get user details")
        except UpstreamError as e:
            logger.error("clients.get_user_details failed user_id=%s status=%s", user_id, e.remote_status)
            raise
        return (resp.json() or {}).get("user") or {}
