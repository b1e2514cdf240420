"""Orchestrateur de la saga de commande.

Rôles:
- create_order: réservation du stock (barrière synchrone), enregistrement de la commande
  'new', ouverture de la session Stripe, puis vidage du panier (best-effort).
- process_payment: appelé uniquement après vérification de la signature Stripe;
  marque la commande payée une seule fois, confirme la réservation et envoie l'email.
- cancel_order / update_status: transitions de la machine d'états (orders.state),
  avec compensation best-effort (libération du stock) et notifications.
Pas de transaction distribuée: une réservation non confirmée expire côté inventaire.
"""
from datetime import datetime, timezone
from math import ceil
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from starlette.concurrency import run_in_threadpool

from order_service.clients.service_clients import ServiceClients
from order_service.config import Settings
from order_service.errors import NotFoundError, UpstreamError
from order_service.notifications import emails
from order_service.notifications.mailer import Notifier
from order_service.orders import state
from order_service.orders.models import Order, OrderInput, OrderStatus
from order_service.orders.order_id import generate_order_id
from order_service.orders.pricing import compute_totals, items_subtotal, shipping_fee_for
from order_service.orders.repository import OrderIdConflict, OrderRepository
from order_service.payments.checkout import make_metadata
from order_service.payments.events import CheckoutSessionCompleted
from order_service.payments.stripe_client import StripeGateway

logger = logging.getLogger(__name__)

# Nombre de tentatives pour un UPDATE conditionnel perdu face à un écrivain concurrent
MAX_WRITE_ATTEMPTS = 3
ORDER_ID_ATTEMPTS = 3

# Statuts à partir desquels un paiement vérifié fait passer la commande en 'processing'
PAYABLE_STATUSES = frozenset({OrderStatus.NEW, OrderStatus.PENDING, OrderStatus.APPROVED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _stock_items(order: Order) -> List[Dict[str, Any]]:
    return [{"product": it.product, "quantity": it.quantity} for it in order.order_items]


# module order_service.orders.service
class OrderService:
    def __init__(
        self,
        settings: Settings,
        repository: OrderRepository,
        clients: ServiceClients,
        gateway: StripeGateway,
        notifier: Notifier,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.repository = repository
        self.clients = clients
        self.gateway = gateway
        self.notifier = notifier
        self._clock = clock

    async def _db(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Appel du dépôt (client Supabase synchrone) hors de la boucle d'événements."""
        return await run_in_threadpool(fn, *args, **kwargs)

    # --- lecture (synchrone: appelée depuis des vues `def`, donc déjà hors boucle) ---
    def _load(self, order_pk: str) -> Order:
        row = self.repository.get_order(order_pk)
        if not row:
            raise NotFoundError("Order not found")
        return Order.from_row(row)

    async def _aload(self, order_pk: str) -> Order:
        return await self._db(self._load, order_pk)

    def get_order(self, order_pk: str) -> Order:
        return self._load(order_pk)

    def get_order_by_order_id(self, order_id: str) -> Order:
        row = self.repository.get_order_by_order_id(order_id)
        if not row:
            raise NotFoundError("Order not found")
        return Order.from_row(row)

    def list_user_orders(self, user_id: str) -> List[Order]:
        return [Order.from_row(r) for r in self.repository.list_user_orders(user_id)]

    def list_orders(self, page: int = 1, limit: int = 10, status: Optional[str] = None) -> Dict[str, Any]:
        page = max(int(page or 1), 1)
        limit = max(int(limit or 10), 1)
        status_filter = state.parse_status(status) if status else None
        rows, total = self.repository.list_orders(page, limit, status_filter)
        return {
            "orders": [Order.from_row(r) for r in rows],
            "page": page,
            "pages": ceil(total / limit) if total else 0,
            "total": total,
        }

    def get_statistics(self) -> Dict[str, Any]:
        stats = self.repository.order_statistics()
        return {
            "totalOrders": stats["total_orders"],
            "totalRevenue": stats["total_revenue"],
            "recentOrders": [Order.from_row(r).to_api() for r in stats["recent_orders"]],
            "statusCounts": stats["status_counts"],
        }

    # --- saga: création ---
    async def _insert_with_fresh_id(self, order: Order) -> Order:
        """Insère la commande; régénère order_id en cas de collision d'unicité."""
        for attempt in range(1, ORDER_ID_ATTEMPTS + 1):
            try:
                return Order.from_row(await self._db(self.repository.insert_order, order.to_row()))
            except OrderIdConflict:
                if attempt == ORDER_ID_ATTEMPTS:
                    raise
                logger.warning("orders.create order_id collision order_id=%s attempt=%s", order.order_id, attempt)
                order = order.model_copy(update={"order_id": generate_order_id()})
        raise RuntimeError("unreachable")

    async def create_order(self, order_input: OrderInput, user: Dict[str, Any], token: str) -> Tuple[Order, str]:
        """
        Étapes:
          1) order_id frais (jamais fourni par le client ni par Stripe)
          2) réservation du stock: un échec interrompt tout, aucune ligne n'est écrite
          3) montants recalculés côté serveur
          4) insertion atomique (status=new, is_paid=False)
          5) session Stripe; en cas d'échec la ligne est supprimée puis l'erreur relancée
          6) vidage du panier (best-effort)
        Retour: (commande enregistrée, URL de paiement hébergée)
        """
        items = list(order_input.order_items)
        order_id = generate_order_id()

        await self.clients.reserve_stock(
            [{"product": it.product, "quantity": it.quantity} for it in items], token
        )

        shipping_fee = shipping_fee_for(items_subtotal(items))
        totals = compute_totals(items, shipping_fee)

        draft = Order(
            order_id=order_id,
            user=str(user.get("id") or ""),
            order_items=items,
            shipping_address=order_input.shipping_address,
            payment_method=order_input.payment_method,
            status=OrderStatus.NEW,
            is_paid=False,
            notes=order_input.notes,
            **totals,
        )
        order = await self._insert_with_fresh_id(draft)
        logger.info("orders.create stored id=%s order_id=%s total=%s", order.id, order.order_id, order.total_price)

        try:
            session = await self.gateway.create_checkout_session(
                items=order.order_items,
                shipping_fee=order.shipping_price,
                success_url=f"{self.settings.checkout_success_url}?orderId={order.order_id}",
                cancel_url=self.settings.checkout_cancel_url,
                metadata=make_metadata(order.id, order.order_id),
                customer_email=user.get("email") or order_input.customer_email,
            )
        except Exception:
            logger.exception("orders.create checkout session failed, rolling back id=%s", order.id)
            try:
                await self._db(self.repository.delete_order, order.id)
            except Exception:
                logger.exception("orders.create rollback failed id=%s order_id=%s", order.id, order.order_id)
            raise

        await self.clients.clear_cart(token)
        return order, session.url

    # --- saga: paiement ---
    async def process_payment(self, session: CheckoutSessionCompleted) -> Order:
        """
        Enregistre un paiement Stripe vérifié.
        - Idempotent: une commande déjà payée est retournée telle quelle, sans aucun appel sortant.
        - Le passage is_paid false -> true est un UPDATE conditionnel: un seul écrivain gagne.
        """
        order_pk = session.metadata.order_id
        for _ in range(MAX_WRITE_ATTEMPTS):
            order = await self._aload(order_pk)
            if order.is_paid:
                logger.info("orders.payment duplicate ignored id=%s order_id=%s", order.id, order.order_id)
                return order

            now = self._clock()
            changes: Dict[str, Any] = {
                "is_paid": True,
                "paid_at": now.isoformat(),
                "payment_result": {
                    "id": session.id,
                    "status": session.payment_status,
                    "update_time": now.isoformat(),
                    "email_address": session.payer_email,
                },
            }
            payable = order.status in PAYABLE_STATUSES
            if payable:
                changes["status"] = OrderStatus.PROCESSING.value
            else:
                logger.error("orders.payment received for order in status=%s id=%s order_id=%s",
                             order.status.value, order.id, order.order_id)

            row = await self._db(self.repository.mark_paid, order_pk, changes, expected_status=order.status)
            if row:
                break
            logger.warning("orders.payment concurrent write detected id=%s, reloading", order_pk)
        else:
            # Plusieurs écrivains concurrents: l'état final est celui relu en base
            return await self._aload(order_pk)

        paid = Order.from_row(row)
        logger.info("orders.payment recorded id=%s order_id=%s session=%s", paid.id, paid.order_id, session.id)
        if payable:
            await self.clients.confirm_reservation(
                paid.order_id, _stock_items(paid), self.settings.internal_service_token
            )
            await self._send_confirmation(paid)
        return paid

    # --- transitions ---
    async def _transition(self, order_pk: str, target: OrderStatus) -> Tuple[Order, Order]:
        """
        Applique target avec un UPDATE conditionnel sur le statut lu.
        Retour: (commande avant, commande après)
        """
        for _ in range(MAX_WRITE_ATTEMPTS):
            before = await self._aload(order_pk)
            if target == OrderStatus.CANCELLED:
                state.ensure_cancellable(before.status)
            changes: Dict[str, Any] = {"status": target.value}
            if target == OrderStatus.DELIVERED:
                changes["delivered_at"] = self._clock().isoformat()
            row = await self._db(self.repository.update_order, order_pk, changes, expected_status=before.status)
            if row:
                return before, Order.from_row(row)
            logger.warning("orders.transition concurrent write id=%s target=%s, reloading", order_pk, target.value)
        raise RuntimeError(f"Order {order_pk} modified concurrently, please retry")

    async def _release_stock(self, order: Order) -> None:
        """Compensation: rend le stock d'une commande payée puis annulée."""
        ok = await self.clients.cancel_reservation(
            order.order_id, _stock_items(order), self.settings.internal_service_token
        )
        if not ok:
            logger.error("orders.cancel stock release failed id=%s order_id=%s", order.id, order.order_id)

    async def cancel_order(self, order_pk: str) -> Order:
        """Annule une commande non expédiée; une commande déjà annulée est retournée inchangée."""
        current = await self._aload(order_pk)
        state.ensure_cancellable(current.status)
        if current.status == OrderStatus.CANCELLED:
            return current
        before, order = await self._transition(order_pk, OrderStatus.CANCELLED)
        if before.status == OrderStatus.CANCELLED:
            return order
        logger.info("orders.cancel id=%s order_id=%s paid=%s", order.id, order.order_id, order.is_paid)
        if order.is_paid:
            await self._release_stock(order)
        return order

    async def update_status(self, order_pk: str, target: Any) -> Order:
        """
        Transition administrative vers n'importe quel statut connu.
        - delivered: renseigne delivered_at
        - cancelled: mêmes règles et même compensation que cancel_order
        - notification best-effort (gabarit dédié pour shipped)
        """
        status = state.parse_status(target)
        before, order = await self._transition(order_pk, status)
        logger.info("orders.status id=%s %s -> %s", order.id, before.status.value, status.value)
        if status == OrderStatus.CANCELLED and before.status != OrderStatus.CANCELLED and order.is_paid:
            await self._release_stock(order)
        await self._notify_status_change(order, status)
        return order

    # --- notifications (jamais bloquantes) ---
    async def _recipient(self, order: Order) -> Optional[Dict[str, Any]]:
        try:
            user = await self.clients.get_user_details(order.user, self.settings.internal_service_token)
        except UpstreamError:
            logger.error("orders.notify user lookup failed user=%s order_id=%s", order.user, order.order_id)
            return None
        if not user.get("email"):
            return None
        return user

    async def _send_confirmation(self, order: Order) -> None:
        try:
            user = await self._recipient(order)
            if not user:
                return
            html = emails.render_order_confirmation(
                self.settings, emails.display_name(user), order.order_id, order.order_items, order.total_price
            )
            await self.notifier.send(user["email"], f"Order Confirmation - {order.order_id}", html)
        except Exception:
            logger.exception("orders.notify confirmation failed order_id=%s", order.order_id)

    async def _notify_status_change(self, order: Order, status: OrderStatus) -> None:
        try:
            user = await self._recipient(order)
            if not user:
                return
            name = emails.display_name(user)
            if status == OrderStatus.SHIPPED:
                html = emails.render_order_shipped(self.settings, name, order.order_id)
            else:
                html = emails.render_order_status(self.settings, name, order.order_id, status.value)
            await self.notifier.send(user["email"], f"Order Status Update - {order.order_id}", html)
        except Exception:
            logger.exception("orders.notify status failed order_id=%s status=%s", order.order_id, status.value)
