# module order_service.orders.views

"""Endpoints de la feature Commandes.
- POST /api/v1/orders: crée la commande, réserve le stock et renvoie l'URL de paiement Stripe (201).
- GET /my-orders, /id/{id}, /order-id/{order_id}: lecture pour l'utilisateur connecté.
- POST /{id}/cancel: annulation (refusée pour une commande expédiée ou livrée).
- GET /, PATCH /{id}/status, GET /statistics: administration (rôles admin/seller).
Les erreurs métier (OrderError) sont converties en réponses JSON par app_setup.exceptions.
"""
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from order_service.dependencies import get_order_service
from order_service.orders.models import OrderInput, StatusUpdate
from order_service.orders.service import OrderService
from order_service.utils.security import require_admin, require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.post("", status_code=201)
async def create_order(
    body: OrderInput,
    user: Dict[str, Any] = Depends(require_user),
    service: OrderService = Depends(get_order_service),
):
    """Crée une commande et la session Stripe associée.
    - Les montants sont recalculés côté serveur (les totaux éventuels du client sont ignorés).
    - Le jeton de l'utilisateur est propagé aux services Produit et Panier.
    - Retour: {message, order, checkoutUrl}
    """
    order, checkout_url = await service.create_order(body, user, user.get("token") or "")
    logger.info("orders.views.create user=%s order_id=%s", user.get("id"), order.order_id)
    return JSONResponse(
        status_code=201,
        content={"message": "Order created successfully", "order": order.to_api(), "checkoutUrl": checkout_url},
    )


@router.get("/my-orders")
def get_my_orders(user: Dict[str, Any] = Depends(require_user), service: OrderService = Depends(get_order_service)):
    orders = service.list_user_orders(str(user.get("id")))
    return {"count": len(orders), "orders": [o.to_api() for o in orders]}


@router.get("/statistics")
def get_statistics(_: Dict[str, Any] = Depends(require_admin), service: OrderService = Depends(get_order_service)):
    return {"statistics": service.get_statistics()}


@router.get("/id/{order_pk}")
def get_order_by_id(order_pk: str, _: Dict[str, Any] = Depends(require_user),
                    service: OrderService = Depends(get_order_service)):
    return {"order": service.get_order(order_pk).to_api()}


@router.get("/order-id/{order_id}")
def get_order_by_order_id(order_id: str, _: Dict[str, Any] = Depends(require_user),
                          service: OrderService = Depends(get_order_service)):
    return {"order": service.get_order_by_order_id(order_id).to_api()}


@router.post("/{order_pk}/cancel")
async def cancel_order(order_pk: str, _: Dict[str, Any] = Depends(require_user),
                       service: OrderService = Depends(get_order_service)):
    order = await service.cancel_order(order_pk)
    return {"message": "Order cancelled successfully", "order": order.to_api()}


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    _: Dict[str, Any] = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    result = service.list_orders(page=page, limit=limit, status=status)
    result["orders"] = [o.to_api() for o in result["orders"]]
    return result


@router.patch("/{order_pk}/status")
async def update_order_status(
    order_pk: str,
    body: StatusUpdate,
    _: Dict[str, Any] = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update_status(order_pk, body.status)
    return {"message": f"Order status updated to {order.status.value}", "order": order.to_api()}
