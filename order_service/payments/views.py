import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PayloadError

from order_service.dependencies import get_order_service
from order_service.errors import NotFoundError, WebhookSignatureError
from order_service.orders.service import OrderService
from order_service.payments.events import CHECKOUT_SESSION_COMPLETED, CheckoutSessionCompleted
from order_service.payments.stripe_client import SIGNATURE_HEADER

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])
# Chemin historique du service commandes (configuration Stripe existante)
orders_webhook_router = APIRouter(prefix="/api/v1/orders", tags=["Payments API"])

ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
SETTLED_PAYMENT_STATUSES = {"paid", "no_payment_required"}

# module order_service.payments.views
@router.post("/webhook", include_in_schema=False)
@orders_webhook_router.post("/webhook", include_in_schema=False)
async def stripe_webhook(request: Request, service: OrderService = Depends(get_order_service)):
    """
    Webhook Stripe (Checkout).
    - Signature: vérifiée sur le corps brut AVANT tout parsing; 400 si invalide.
    - checkout.session.completed (payé) / async_payment_succeeded: process_payment.
    - 200 aussi pour « commande introuvable » et « déjà payée »: ce n'est pas
      la faute de l'émetteur, inutile qu'il réessaie.
    - 500 pour une vraie erreur de traitement: Stripe réessaiera.
    """
    payload = await request.body()
    try:
        event = service.gateway.verify_webhook(payload, request.headers.get(SIGNATURE_HEADER))
    except WebhookSignatureError as e:
        logger.error("payments.webhook rejected: %s", e.message)
        return JSONResponse(status_code=400, content={"message": e.message})

    try:
        if event.type in (CHECKOUT_SESSION_COMPLETED, ASYNC_PAYMENT_SUCCEEDED):
            try:
                session = CheckoutSessionCompleted.from_event(event)
            except PayloadError:
                logger.warning("payments.webhook %s without order metadata ignored event=%s", event.type, event.id)
                return {"received": True}
            if session.payment_status not in SETTLED_PAYMENT_STATUSES:
                # Paiement différé (ex: prélèvement): on attend async_payment_succeeded
                logger.info("payments.webhook session=%s payment_status=%s en attente", session.id, session.payment_status)
                return {"received": True}
            try:
                order = await service.process_payment(session)
            except NotFoundError:
                logger.warning("payments.webhook order not found id=%s session=%s", session.metadata.order_id, session.id)
                return {"received": True}
            logger.info("payments.webhook processed order_id=%s status=%s", order.order_id, order.status.value)
        elif event.type == "payment_intent.succeeded":
            logger.info("Payment intent succeeded event received")
        elif event.type in ("payment_intent.payment_failed", "checkout.session.async_payment_failed"):
            logger.warning("payments.webhook payment failed event=%s type=%s", event.id, event.type)
        else:
            logger.info("Unhandled event type: %s", event.type)
        return {"received": True}
    except Exception:
        logger.exception("payments.webhook processing failed event=%s", event.id)
        return JSONResponse(status_code=500, content={"message": "Webhook processing failed"})
