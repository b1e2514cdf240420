"""
Lifespan FastAPI: construit une seule fois les objets partagés du process.
- Settings (configuration immuable lue depuis l'environnement)
- OrderService et ses collaborateurs (dépôt Supabase, clients HTTP, Stripe, SMTP)
Un objet déjà présent sur app.state (ex: injecté par les tests) est conservé.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from order_service.clients.service_clients import ServiceClients
from order_service.config import Settings, load_settings
from order_service.notifications.mailer import Notifier
from order_service.orders.repository import OrderRepository
from order_service.orders.service import OrderService
from order_service.payments.stripe_client import StripeGateway


def build_order_service(settings: Settings) -> OrderService:
    return OrderService(
        settings=settings,
        repository=OrderRepository(settings),
        clients=ServiceClients(settings),
        gateway=StripeGateway(settings),
        notifier=Notifier(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    settings = getattr(app.state, "settings", None) or load_settings()
    app.state.settings = settings
    if getattr(app.state, "order_service", None) is None:
        app.state.order_service = build_order_service(settings)
    if not settings.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET absent: tous les webhooks seront rejetés")
    if not settings.smtp_host:
        logger.warning("SMTP_HOST absent: les emails de commande ne seront pas envoyés")
    logger.info("Order service ready (table=%s)", settings.orders_table)
    yield
