"""
Machine d'états des commandes.

- État initial: new. États terminaux: delivered, cancelled, rejected.
- new -> processing uniquement sur paiement vérifié (voir service.process_payment).
- Toute commande non expédiée peut être annulée; shipped/delivered refusent l'annulation.
- Les transitions administratives acceptent n'importe quel statut connu: le contrôle
  des rôles est fait en amont (require_admin).
"""
from typing import Any

from order_service.errors import DomainRuleError, ValidationError
from order_service.orders.models import OrderStatus

NON_CANCELLABLE_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})

CANCEL_REFUSED_MESSAGE = "Cannot cancel order that has been shipped or delivered"


def parse_status(value: Any) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError("Invalid order status")


def ensure_cancellable(status: OrderStatus) -> None:
    if status in NON_CANCELLABLE_STATUSES:
        raise DomainRuleError(CANCEL_REFUSED_MESSAGE)
