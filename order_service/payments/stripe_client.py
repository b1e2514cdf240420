"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.

- create_checkout_session: ouvre une session Checkout hébergée et retourne son URL.
- verify_webhook: vérifie la signature Stripe sur le corps BRUT de la requête,
  puis seulement parse l'événement. Tout re-encodage du corps avant vérification
  casserait la signature.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
import json
import logging

import stripe
from starlette.concurrency import run_in_threadpool

from order_service.config import Settings
from order_service.errors import PaymentGatewayError, WebhookSignatureError
from order_service.orders.models import OrderItem
from order_service.payments import checkout
from order_service.payments.events import WebhookEvent

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"
# Fenêtre de tolérance sur l'horodatage signé (secondes), valeur par défaut de Stripe
SIGNATURE_TOLERANCE = 300


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


# module order_service.payments.stripe_client
def require_stripe(settings: Settings):
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key
    return stripe


def verify_webhook(raw_body: bytes, signature_header: Optional[str], secret: str,
                   tolerance: int = SIGNATURE_TOLERANCE) -> WebhookEvent:
    """
    Vérifie puis parse un événement Stripe signé.
    - raw_body: octets exacts reçus (jamais un objet re-sérialisé)
    - signature_header: valeur de l'en-tête Stripe-Signature (t=...,v1=...)
    - secret: STRIPE_WEBHOOK_SECRET
    Échec fermé: WebhookSignatureError si en-tête/secret manquant, signature fausse
    ou horodatage hors tolérance. Retour: WebhookEvent typé.
    """
    if not signature_header:
        raise WebhookSignatureError("Missing stripe-signature header")
    if not secret:
        logger.error("payments.verify_webhook STRIPE_WEBHOOK_SECRET non configuré")
        raise WebhookSignatureError("Webhook secret not configured")
    try:
        payload = raw_body.decode("utf-8")
    except UnicodeDecodeError:
        raise WebhookSignatureError("Invalid webhook payload encoding")
    try:
        stripe.WebhookSignature.verify_header(payload, signature_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning("payments.verify_webhook signature rejected: %s", e)
        raise WebhookSignatureError(f"Webhook Error: {e}")
    try:
        return WebhookEvent.model_validate(json.loads(payload))
    except ValueError as e:
        # pydantic.ValidationError hérite de ValueError
        raise WebhookSignatureError(f"Webhook Error: invalid payload ({e.__class__.__name__})")


class StripeGateway:
    def __init__(self, settings: Settings):
        self._settings = settings

    def _create_session(self, **params: Any):
        require_stripe(self._settings)
        return stripe.checkout.Session.create(**params)

    async def create_checkout_session(
        self,
        items: Iterable[OrderItem],
        shipping_fee: Any,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Crée une session Stripe Checkout en mode paiement.
        - line_items: prix unitaires en centimes (checkout.to_line_items)
        - shipping_options: forfait de livraison en centimes
        - metadata: {"order_id": <clé primaire>, "orderId": <ORD-...>}
        - customer_email: pré-remplit l'email du payeur sur la page Stripe
        Lève PaymentGatewayError si Stripe refuse ou ne renvoie pas d'URL.
        """
        currency = self._settings.currency
        extra: Dict[str, Any] = {"customer_email": customer_email} if customer_email else {}
        try:
            session = await run_in_threadpool(
                self._create_session,
                payment_method_types=["card"],
                mode="payment",
                line_items=checkout.to_line_items(items, currency),
                shipping_options=checkout.shipping_options(shipping_fee, currency),
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                **extra,
            )
        except stripe.StripeError as e:
            logger.exception("payments.create_checkout_session failed metadata=%s", metadata)
            raise PaymentGatewayError(f"Payment session could not be created: {e.user_message or e.__class__.__name__}") from e
        url = getattr(session, "url", None)
        if not url:
            raise PaymentGatewayError("Payment session could not be created: missing checkout URL")
        return CheckoutSession(id=str(getattr(session, "id", "") or ""), url=str(url))

    def verify_webhook(self, raw_body: bytes, signature_header: Optional[str]) -> WebhookEvent:
        return verify_webhook(raw_body, signature_header, self._settings.stripe_webhook_secret)
