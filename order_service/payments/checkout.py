"""
Construction des paramètres Stripe Checkout (pas d'appel réseau).
"""
from typing import Any, Dict, Iterable, List

from order_service.orders.models import OrderItem
from order_service.orders.pricing import to_minor_units

SHIPPING_DISPLAY_NAME = "Standard Shipping"
DELIVERY_MIN_BUSINESS_DAYS = 3
DELIVERY_MAX_BUSINESS_DAYS = 5

# module order_service.payments.checkout
def to_line_items(items: Iterable[OrderItem], currency: str) -> List[Dict[str, Any]]:
    """
    Une ligne Stripe par article de la commande.
    - unit_amount en centimes, calculé à partir du prix unitaire figé dans la commande
    - l'image n'est transmise que si elle est renseignée
    """
    line_items: List[Dict[str, Any]] = []
    for item in items:
        product_data: Dict[str, Any] = {"name": item.name}
        if item.image:
            product_data["images"] = [item.image]
        line_items.append({
            "quantity": item.quantity,
            "price_data": {
                "currency": currency,
                "unit_amount": to_minor_units(item.price),
                "product_data": product_data,
            },
        })
    return line_items

def shipping_options(shipping_fee: Any, currency: str) -> List[Dict[str, Any]]:
    """Option de livraison à montant fixe (0 si livraison offerte)."""
    return [
        {
            "shipping_rate_data": {
                "type": "fixed_amount",
                "fixed_amount": {"amount": to_minor_units(shipping_fee), "currency": currency},
                "display_name": SHIPPING_DISPLAY_NAME,
                "delivery_estimate": {
                    "minimum": {"unit": "business_day", "value": DELIVERY_MIN_BUSINESS_DAYS},
                    "maximum": {"unit": "business_day", "value": DELIVERY_MAX_BUSINESS_DAYS},
                },
            },
        }
    ]

def make_metadata(order_pk: str, order_id: str) -> Dict[str, str]:
    """Métadonnées opaques renvoyées telles quelles par Stripe dans le webhook."""
    return {"order_id": str(order_pk), "orderId": order_id}
