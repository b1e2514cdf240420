"""
Module 'payments' (feature-first): point d'entrée public.
Réunit les paramètres Checkout, l'adaptateur Stripe et les événements webhook typés.
"""

from .checkout import to_line_items, shipping_options, make_metadata
from .events import WebhookEvent, CheckoutSessionCompleted, CHECKOUT_SESSION_COMPLETED
from .stripe_client import require_stripe, verify_webhook, StripeGateway, CheckoutSession

__all__ = [
    # checkout
    "to_line_items",
    "shipping_options",
    "make_metadata",
    # events
    "WebhookEvent",
    "CheckoutSessionCompleted",
    "CHECKOUT_SESSION_COMPLETED",
    # stripe
    "require_stripe",
    "verify_webhook",
    "StripeGateway",
    "CheckoutSession",
]
