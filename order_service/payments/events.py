"""
Événements Stripe typés (après vérification de signature uniquement).

- WebhookEvent: enveloppe générique {id, type, data.object}
- CheckoutSessionCompleted: vue typée de l'objet d'un checkout.session.completed,
  avec les métadonnées posées à la création de la session (order_id, orderId).
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def object(self) -> Dict[str, Any]:
        return (self.data or {}).get("object") or {}


class SessionMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # clé primaire de stockage de la commande
    order_id: str
    # identifiant lisible (ORD-...)
    order_ref: Optional[str] = Field(default=None, alias="orderId")


class CheckoutSessionCompleted(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    payment_status: str = ""
    customer_email: Optional[str] = None
    customer_details: Optional[Dict[str, Any]] = None
    amount_total: Optional[int] = None
    payment_intent: Optional[Any] = None
    metadata: SessionMetadata

    @property
    def payer_email(self) -> Optional[str]:
        return self.customer_email or (self.customer_details or {}).get("email")

    @classmethod
    def from_event(cls, event: WebhookEvent) -> "CheckoutSessionCompleted":
        return cls.model_validate(event.object)
