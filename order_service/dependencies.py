"""
Dépendances FastAPI partagées: accès aux objets construits une fois par le lifespan
(Settings, OrderService) et rangés sur app.state.
"""
from fastapi import Request

from order_service.config import Settings
from order_service.orders.service import OrderService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service
