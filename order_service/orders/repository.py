"""
Accès aux données pour la feature 'orders' (table Supabase 'orders').

- Une ligne par commande, unique sur id (clé primaire) et sur order_id.
- Les écritures concurrentes sur une même commande sont arbitrées par des UPDATE
  conditionnels (WHERE status = ... / WHERE is_paid = false): un seul écrivain gagne.
- Les erreurs de stockage inattendues sont propagées; l'orchestrateur les traite
  comme des erreurs internes.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from postgrest.exceptions import APIError

import order_service.infra.supabase_client as supabase_client
from order_service.config import Settings
from order_service.orders.models import OrderStatus

logger = logging.getLogger(__name__)

# Codes PostgreSQL renvoyés par PostgREST
UNIQUE_VIOLATION = "23505"
INVALID_TEXT_REPRESENTATION = "22P02"

RECENT_ORDERS_LIMIT = 5
# Taille de page pour le calcul du chiffre d'affaires (max-rows Supabase par défaut)
REVENUE_PAGE_SIZE = 1000


class OrderIdConflict(Exception):
    """order_id déjà présent en base (collision de génération)."""


def _error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if code:
        return str(code)
    if e.args and isinstance(e.args[0], dict):
        return e.args[0].get("code")
    return None

def _first(res) -> Optional[Dict[str, Any]]:
    rows = getattr(res, "data", None) or []
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None


# module order_service.orders.repository
class OrderRepository:
    def __init__(self, settings: Settings, client=None):
        self._settings = settings
        self._client = client

    def _table(self):
        client = self._client or supabase_client.get_service_supabase(self._settings)
        return client.table(self._settings.orders_table)

    # --- écritures ---
    def insert_order(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Création atomique d'une seule ligne; retourne la ligne stockée (id, timestamps)."""
        try:
            res = self._table().insert(row).execute()
        except APIError as e:
            if _error_code(e) == UNIQUE_VIOLATION:
                raise OrderIdConflict(row.get("order_id")) from e
            raise
        stored = _first(res)
        if not stored:
            raise RuntimeError("Insertion de la commande sans ligne retournée")
        return stored

    def delete_order(self, order_pk: str) -> None:
        """Annule une création dont la session de paiement n'a pas pu être ouverte."""
        logger.warning("orders.repository.delete_order rollback id=%s", order_pk)
        self._table().delete().eq("id", order_pk).execute()

    def update_order(
        self,
        order_pk: str,
        changes: Dict[str, Any],
        expected_status: Optional[OrderStatus] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        UPDATE conditionnel.
        - expected_status: ne met à jour que si la ligne est toujours dans cet état.
        Retourne la ligne mise à jour, ou None si aucune ligne ne correspondait.
        """
        query = self._table().update(changes).eq("id", order_pk)
        if expected_status is not None:
            query = query.eq("status", OrderStatus(expected_status).value)
        return _first(query.execute())

    def mark_paid(
        self,
        order_pk: str,
        changes: Dict[str, Any],
        expected_status: Optional[OrderStatus] = None,
    ) -> Optional[Dict[str, Any]]:
        """Passe is_paid à true une seule fois: None si un autre écrivain l'a déjà fait."""
        query = self._table().update(changes).eq("id", order_pk).eq("is_paid", False)
        if expected_status is not None:
            query = query.eq("status", OrderStatus(expected_status).value)
        return _first(query.execute())

    # --- lectures ---
    def get_order(self, order_pk: str) -> Optional[Dict[str, Any]]:
        try:
            res = self._table().select("*").eq("id", order_pk).limit(1).execute()
        except APIError as e:
            # Identifiant mal formé (ex: uuid invalide): équivalent à « introuvable »
            if _error_code(e) == INVALID_TEXT_REPRESENTATION:
                return None
            raise
        return _first(res)

    def get_order_by_order_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        res = self._table().select("*").eq("order_id", order_id).limit(1).execute()
        return _first(res)

    def list_user_orders(self, user_id: str) -> List[Dict[str, Any]]:
        res = (
            self._table()
            .select("*")
            .eq("user", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return res.data or []

    def list_orders(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        start = (page - 1) * limit
        query = self._table().select("*", count="exact")
        if status is not None:
            query = query.eq("status", OrderStatus(status).value)
        res = query.order("created_at", desc=True).range(start, start + limit - 1).execute()
        return res.data or [], int(res.count or 0)

    def count_orders(self, **filters: Any) -> int:
        query = self._table().select("id", count="exact")
        for column, value in filters.items():
            query = query.eq(column, value)
        res = query.limit(1).execute()
        return int(res.count or 0)

    def _paid_revenue(self) -> Tuple[int, Decimal]:
        """
        (nombre de commandes payées, somme de leurs total_price).
        PostgREST plafonne chaque réponse (max-rows): on parcourt toutes les pages
        jusqu'à avoir lu `count` lignes.
        """
        total = Decimal("0")
        seen = 0
        count: Optional[int] = None
        while count is None or seen < count:
            res = (
                self._table()
                .select("total_price", count="exact")
                .eq("is_paid", True)
                .order("id")
                .range(seen, seen + REVENUE_PAGE_SIZE - 1)
                .execute()
            )
            count = int(res.count or 0)
            rows = res.data or []
            if not rows:
                break
            total += sum((Decimal(str(r.get("total_price") or 0)) for r in rows), Decimal("0"))
            seen += len(rows)
        return count, total.quantize(Decimal("0.01"))

    def order_statistics(self) -> Dict[str, Any]:
        """
        Statistiques admin:
        - total_orders / total_revenue: commandes payées uniquement
        - recent_orders: les 5 dernières commandes (tous statuts)
        - status_counts: nombre de commandes par statut
        """
        paid_count, revenue = self._paid_revenue()
        recent = (
            self._table()
            .select("*")
            .order("created_at", desc=True)
            .limit(RECENT_ORDERS_LIMIT)
            .execute()
        )
        status_counts = {s.value: self.count_orders(status=s.value) for s in OrderStatus}
        return {
            "total_orders": paid_count,
            "total_revenue": float(revenue),
            "recent_orders": recent.data or [],
            "status_counts": status_counts,
        }
