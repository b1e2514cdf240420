"""
Rendu des emails de commande (Jinja2, autoescape HTML).
"""
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from order_service.config import Settings
from order_service.orders.models import OrderItem

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£", "inr": "₹"}

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


def _context(settings: Settings, user_name: str, order_id: str, button_color: str) -> Dict[str, Any]:
    return {
        "shop_name": settings.shop_name,
        "user_name": user_name,
        "order_id": order_id,
        "order_url": f"{settings.frontend_url}/orders/{order_id}",
        "button_color": button_color,
        "currency_symbol": CURRENCY_SYMBOLS.get(settings.currency, ""),
    }

def render_order_confirmation(settings: Settings, user_name: str, order_id: str,
                              items: Iterable[OrderItem], total_price: float) -> str:
    ctx = _context(settings, user_name, order_id, "#22BC66")
    ctx.update(items=list(items), total_price=total_price)
    return _env.get_template("order_confirmation.html").render(**ctx)

def render_order_status(settings: Settings, user_name: str, order_id: str, status: str) -> str:
    ctx = _context(settings, user_name, order_id, "#3869D4")
    ctx["status"] = status
    return _env.get_template("order_status.html").render(**ctx)

def render_order_shipped(settings: Settings, user_name: str, order_id: str,
                         tracking_number: Optional[str] = None) -> str:
    ctx = _context(settings, user_name, order_id, "#22BC66")
    ctx["tracking_number"] = tracking_number
    return _env.get_template("order_shipped.html").render(**ctx)

def display_name(user: Dict[str, Any]) -> str:
    """Prénom Nom depuis le profil du service Utilisateur, à défaut l'email."""
    name = " ".join(p for p in (user.get("firstName"), user.get("lastName")) if p).strip()
    return name or str(user.get("name") or user.get("email") or "")
