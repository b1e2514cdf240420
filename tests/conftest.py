import copy
import hashlib
import hmac
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from order_service.app_setup.factory import create_app
from order_service.clients.service_clients import ServiceClients
from order_service.config import Settings
from order_service.notifications.mailer import Notifier
from order_service.orders.models import OrderStatus
from order_service.orders.repository import OrderIdConflict
from order_service.orders.service import OrderService
from order_service.payments.stripe_client import CheckoutSession, StripeGateway
from order_service.utils.security import get_current_user

WEBHOOK_SECRET = "whsec_test_secret"
FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class FakeOrderRepository:
    """Dépôt en mémoire avec la même sémantique d'UPDATE conditionnel que la table Supabase."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.deleted: List[str] = []
        self.fail_mark_paid: Optional[Exception] = None

    def insert_order(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if any(r["order_id"] == row["order_id"] for r in self.rows.values()):
            raise OrderIdConflict(row["order_id"])
        stored = copy.deepcopy(row)
        stored["id"] = str(uuid.uuid4())
        stored["created_at"] = FIXED_NOW.isoformat()
        stored["updated_at"] = FIXED_NOW.isoformat()
        self.rows[stored["id"]] = stored
        return copy.deepcopy(stored)

    def delete_order(self, order_pk: str) -> None:
        self.deleted.append(order_pk)
        self.rows.pop(order_pk, None)

    def _conditional_update(self, order_pk, changes, expected_status, require_unpaid):
        row = self.rows.get(order_pk)
        if row is None:
            return None
        if require_unpaid and row.get("is_paid"):
            return None
        if expected_status is not None and row.get("status") != OrderStatus(expected_status).value:
            return None
        row.update(copy.deepcopy(changes))
        return copy.deepcopy(row)

    def update_order(self, order_pk, changes, expected_status=None):
        return self._conditional_update(order_pk, changes, expected_status, require_unpaid=False)

    def mark_paid(self, order_pk, changes, expected_status=None):
        if self.fail_mark_paid is not None:
            raise self.fail_mark_paid
        return self._conditional_update(order_pk, changes, expected_status, require_unpaid=True)

    def get_order(self, order_pk: str):
        row = self.rows.get(order_pk)
        return copy.deepcopy(row) if row else None

    def get_order_by_order_id(self, order_id: str):
        for row in self.rows.values():
            if row["order_id"] == order_id:
                return copy.deepcopy(row)
        return None

    def list_user_orders(self, user_id: str):
        return [copy.deepcopy(r) for r in self.rows.values() if r["user"] == user_id]

    def list_orders(self, page=1, limit=10, status=None):
        rows = [r for r in self.rows.values() if status is None or r["status"] == OrderStatus(status).value]
        start = (page - 1) * limit
        return [copy.deepcopy(r) for r in rows[start:start + limit]], len(rows)

    def order_statistics(self):
        paid = [r for r in self.rows.values() if r.get("is_paid")]
        return {
            "total_orders": len(paid),
            "total_revenue": round(sum(r["total_price"] for r in paid), 2),
            "recent_orders": [copy.deepcopy(r) for r in list(self.rows.values())[:5]],
            "status_counts": {s.value: sum(1 for r in self.rows.values() if r["status"] == s.value) for s in OrderStatus},
        }

    # utilitaire de test: insère directement une commande dans un état donné
    def seed(self, **overrides: Any) -> Dict[str, Any]:
        row = {
            "order_id": f"ORD-SEED-{uuid.uuid4().hex[:8].upper()}",
            "user": "user-1",
            "order_items": [
                {"product": "p1", "name": "Ashwagandha", "price": 20.0, "quantity": 2, "image": ""},
                {"product": "p2", "name": "Triphala", "price": 15.0, "quantity": 1, "image": ""},
            ],
            "shipping_address": {"address": "1 rue A", "city": "Paris", "postal_code": "75001", "country": "FR"},
            "payment_method": "card",
            "payment_result": None,
            "items_price": 55.0,
            "tax_price": 8.25,
            "shipping_price": 10.0,
            "total_price": 73.25,
            "is_paid": False,
            "paid_at": None,
            "status": "new",
            "delivered_at": None,
            "notes": None,
            "receipt_url": None,
        }
        row.update(overrides)
        return self.insert_order(row)


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """En-tête Stripe-Signature (t=...,v1=...) calculé comme le fait Stripe."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


@pytest.fixture
def sign():
    return sign_payload

@pytest.fixture
def settings() -> Settings:
    return Settings(
        product_service_url="http://products.test",
        cart_service_url="http://cart.test",
        user_service_url="http://users.test",
        internal_service_token="internal-test-token",
        stripe_secret_key="sk_test_dummy",
        stripe_webhook_secret=WEBHOOK_SECRET,
        frontend_url="http://shop.test",
        smtp_host="smtp.test",
        mail_from="orders@shop.test",
        shop_name="NaturaAyur",
    )

@pytest.fixture
def repository() -> FakeOrderRepository:
    return FakeOrderRepository()

@pytest.fixture
def clients() -> MagicMock:
    # mock typé sur la classe: les méthodes async deviennent des AsyncMock
    mock = MagicMock(spec=ServiceClients)
    mock.reserve_stock.return_value = {"success": True}
    mock.confirm_reservation.return_value = True
    mock.cancel_reservation.return_value = True
    mock.clear_cart.return_value = True
    mock.get_user_details.return_value = {"email": "jane@example.com", "firstName": "Jane", "lastName": "Doe"}
    return mock

@pytest.fixture
def gateway(settings) -> MagicMock:
    mock = MagicMock(spec=StripeGateway)
    mock.create_checkout_session.return_value = CheckoutSession(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")
    # vérification de signature réelle: les tests webhook signent leurs payloads
    real = StripeGateway(settings)
    mock.verify_webhook.side_effect = real.verify_webhook
    return mock

@pytest.fixture
def notifier() -> MagicMock:
    mock = MagicMock(spec=Notifier)
    mock.send.return_value = True
    return mock

@pytest.fixture
def order_service(settings, repository, clients, gateway, notifier) -> OrderService:
    return OrderService(settings, repository, clients, gateway, notifier, clock=lambda: FIXED_NOW)

@pytest.fixture
def current_user() -> Dict[str, Any]:
    return {
        "id": "user-1",
        "email": "jane@example.com",
        "role": "user",
        "metadata": {"full_name": "Jane Doe"},
        "token": "user-jwt",
    }

@pytest.fixture
def app(settings, order_service, current_user):
    application = create_app(settings=settings, order_service=order_service)
    # l'utilisateur courant est mutable: un test peut le passer admin
    application.dependency_overrides[get_current_user] = lambda: current_user
    return application

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture
def admin(current_user) -> Dict[str, Any]:
    current_user["role"] = "admin"
    return current_user
