"""
Factory d'application pour les entrypoints (ex: order_service.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from typing import Optional
from fastapi import FastAPI

from order_service.config import Settings, load_settings
from order_service.orders.service import OrderService
from .lifespan import lifespan
from .middlewares import register_basic_middlewares
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app(settings: Optional[Settings] = None, order_service: Optional[OrderService] = None) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base (CORS, hôtes de confiance, en-têtes proxy)
      - gestionnaires d'exceptions (erreurs métier -> JSON)
      - tous les routers (orders, payments, health)
    settings / order_service: injectables (tests); sinon construits au démarrage.
    """
    settings = settings or load_settings()
    app = FastAPI(title="Order Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.order_service = order_service
    register_basic_middlewares(app, settings)
    register_exception_handlers(app)
    register_routers(app)
    return app
