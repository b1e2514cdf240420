"""
Erreurs métier du service commandes.

Chaque classe porte un message affichable tel quel au client et le code HTTP
associé; le mapping HTTP est fait une seule fois dans app_setup.exceptions.
Les échecs « best-effort » (panier, confirmation/annulation de réservation, email)
ne lèvent jamais: ils sont journalisés par la couche qui les appelle.
"""
from typing import Optional


class OrderError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderError):
    """Entrée invalide ou incomplète (aucun effet de bord)."""
    status_code = 400


class NotFoundError(OrderError):
    status_code = 404


class DomainRuleError(OrderError):
    """Transition refusée par la machine d'états (ex: annuler une commande expédiée)."""
    status_code = 409


class UpstreamError(OrderError):
    """
    Échec d'un appel sortant « dur » (réservation de stock, profil utilisateur).
    - remote_status: code HTTP renvoyé par le service distant (None si timeout/réseau)
    """
    status_code = 502

    def __init__(self, message: str, remote_status: Optional[int] = None):
        super().__init__(message)
        self.remote_status = remote_status
        # Un refus explicite (4xx) est renvoyé tel quel: ex. stock insuffisant
        if remote_status is not None and 400 <= remote_status < 500:
            self.status_code = 400


class PaymentGatewayError(OrderError):
    status_code = 502


class WebhookSignatureError(OrderError):
    """Signature Stripe absente ou invalide: la requête est rejetée avant toute logique."""
    status_code = 400
