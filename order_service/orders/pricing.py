"""
Calcul des montants d'une commande (pas de Stripe, pas de DB).

Les montants sont toujours recalculés côté serveur à partir des lignes;
aucun total envoyé par le client n'est pris en compte.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Union

from order_service.orders.models import OrderItem

TAX_RATE = Decimal("0.15")
FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING_FEE = Decimal("10")

_CENT = Decimal("0.01")

Number = Union[int, float, Decimal]

# module order_service.orders.pricing
def round2(value: Number) -> Decimal:
    """Arrondi monétaire à 2 décimales (demi-supérieur), sans bruit de float."""
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)

def items_subtotal(items: Iterable[OrderItem]) -> Decimal:
    return round2(sum((Decimal(str(it.price)) * it.quantity for it in items), Decimal("0")))

def shipping_fee_for(items_price: Number) -> Decimal:
    """Livraison gratuite strictement au-dessus de 100, sinon forfait de 10."""
    if Decimal(str(items_price)) > FREE_SHIPPING_THRESHOLD:
        return Decimal("0.00")
    return round2(FLAT_SHIPPING_FEE)

def compute_totals(items: Iterable[OrderItem], shipping_fee: Number) -> Dict[str, float]:
    """
    Retourne les 4 champs monétaires de l'agrégat Order:
    - items_price = Σ(prix × quantité)
    - tax_price = round2(items_price × 0.15)
    - total_price = items_price + tax_price + shipping_price
    """
    items_price = items_subtotal(items)
    tax_price = round2(items_price * TAX_RATE)
    shipping_price = round2(shipping_fee)
    total_price = round2(items_price + tax_price + shipping_price)
    return {
        "items_price": float(items_price),
        "tax_price": float(tax_price),
        "shipping_price": float(shipping_price),
        "total_price": float(total_price),
    }

def to_minor_units(amount: Any) -> int:
    """Montant en centimes pour Stripe (unit_amount, fixed_amount)."""
    return int(round2(amount) * 100)
