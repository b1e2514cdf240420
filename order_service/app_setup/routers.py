"""
Registre central des routers.
- API v1: orders, payments (webhook Stripe, aussi servi sous /api/v1/orders/webhook)
- Health
"""
from fastapi import FastAPI
from order_service.orders import views as orders_views
from order_service.payments import views as payments_views
from order_service.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(payments_views.orders_webhook_router)
    app.include_router(orders_views.router)
    app.include_router(payments_views.router)
    app.include_router(health_router)
