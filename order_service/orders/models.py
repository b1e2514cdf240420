"""
Modèles de la feature 'orders' (agrégat Order et entrées de l'API).

- Les noms Python sont en snake_case (colonnes Supabase), l'API expose du camelCase
  via les alias (orderId, orderItems, shippingAddress, ...).
- Les lignes de commande sont copiées à la création: une modification ultérieure
  du catalogue ne change jamais une commande passée.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    NEW = "new"
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    APPROVED = "approved"


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItem(_Model):
    product: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: float = Field(gt=0)
    quantity: int = Field(ge=1)
    image: str = ""

    @field_validator("price")
    @classmethod
    def _whole_cents(cls, v: float) -> float:
        # Stripe facture des centimes entiers: le prix stocké doit l'être aussi
        if Decimal(str(v)) != Decimal(str(v)).quantize(Decimal("0.01")):
            raise ValueError("le prix doit être un nombre entier de centimes")
        return v


class ShippingAddress(_Model):
    address: str
    city: str
    postal_code: str
    country: str

    @field_validator("address", "city", "postal_code", "country")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("champ d'adresse requis")
        return v


class PaymentResult(_Model):
    id: str
    status: str
    update_time: str
    email_address: Optional[str] = None


class OrderInput(_Model):
    """Corps de POST /api/v1/orders. Les montants ne sont jamais acceptés du client."""
    order_items: List[OrderItem] = Field(min_length=1)
    shipping_address: ShippingAddress
    payment_method: str = Field(min_length=2)
    customer_email: Optional[EmailStr] = None
    notes: Optional[str] = None


class StatusUpdate(_Model):
    status: str


class Order(_Model):
    id: Optional[str] = None
    order_id: str
    user: str
    order_items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: str
    payment_result: Optional[PaymentResult] = None
    items_price: float = 0.0
    tax_price: float = 0.0
    shipping_price: float = 0.0
    total_price: float = 0.0
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    status: OrderStatus = OrderStatus.NEW
    delivered_at: Optional[datetime] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        data = dict(row)
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        if data.get("user") is not None:
            data["user"] = str(data["user"])
        return cls.model_validate(data)

    def to_row(self) -> Dict[str, Any]:
        """Ligne Supabase (snake_case, JSON-compatible); l'id est attribué par la base."""
        return self.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
