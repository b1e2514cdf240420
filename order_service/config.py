# order_service.config
from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du service commandes.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise les secrets/URLs (Supabase, Stripe, services Produit/Panier/Utilisateur, SMTP)
- Construit un objet Settings immuable, créé une seule fois au démarrage (lifespan)
  puis transmis aux composants: la logique métier ne lit jamais os.environ.
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env(name: str, default: str = "") -> str:
    return _clean_env(os.getenv(name) or default)

def _env_list(name: str, default: str) -> List[str]:
    return [v.strip() for v in (os.getenv(name) or default).split(",") if v.strip()]

def _normalize_url(url: str) -> str:
    # SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
    if url and not url.startswith("http"):
        url = "https://" + url
    return url.rstrip("/")


@dataclass(frozen=True)
class Settings:
    # Supabase (stockage des commandes)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_key: str = ""
    orders_table: str = "orders"

    # Services internes appelés par la saga
    product_service_url: str = "http://localhost:8003"
    cart_service_url: str = "http://localhost:8002"
    user_service_url: str = "http://localhost:8001"
    service_timeout: float = 10.0
    internal_service_token: str = "internal-token"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    currency: str = "usd"
    frontend_url: str = "http://localhost:3000"

    # SMTP (notifications)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = False
    mail_from: str = ""
    shop_name: str = "NaturaAyur"

    # HTTP
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    allowed_hosts: List[str] = field(default_factory=lambda: ["localhost", "127.0.0.1"])
    admin_roles: List[str] = field(default_factory=lambda: ["admin", "seller"])

    @property
    def checkout_success_url(self) -> str:
        return f"{self.frontend_url}/order-success"

    @property
    def checkout_cancel_url(self) -> str:
        return f"{self.frontend_url}/cart?canceled=true"


def load_settings() -> Settings:
    """
    Construit Settings à partir de l'environnement.
    Appelé une fois par le lifespan; les tests construisent directement Settings(...).
    """
    smtp_user = _env("SMTP_USER")
    return Settings(
        supabase_url=_normalize_url(_env("SUPABASE_URL") or _env("NEXT_PUBLIC_SUPABASE_URL")),
        supabase_anon_key=_env("SUPABASE_ANON_KEY") or _env("SUPABASE_KEY"),
        supabase_service_key=_env("SUPABASE_SERVICE_KEY"),
        orders_table=_env("ORDERS_TABLE", "orders"),
        product_service_url=_env("PRODUCT_SERVICE_URL", "http://localhost:8003").rstrip("/"),
        cart_service_url=_env("CART_SERVICE_URL", "http://localhost:8002").rstrip("/"),
        user_service_url=_env("USER_SERVICE_URL", "http://localhost:8001").rstrip("/"),
        service_timeout=float(_env("SERVICE_TIMEOUT_SECONDS", "10")),
        internal_service_token=_env("INTERNAL_SERVICE_TOKEN", "internal-token"),
        stripe_secret_key=_env("STRIPE_SECRET_KEY"),
        stripe_webhook_secret=_env("STRIPE_WEBHOOK_SECRET"),
        currency=_env("STRIPE_CURRENCY", "usd").lower(),
        frontend_url=_env("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        smtp_host=_env("SMTP_HOST"),
        smtp_port=int(_env("SMTP_PORT", "587")),
        smtp_user=smtp_user,
        smtp_password=_env("SMTP_PASSWORD"),
        smtp_use_tls=_env("SMTP_USE_TLS", "false").lower() == "true",
        mail_from=_env("MAIL_FROM") or smtp_user,
        shop_name=_env("SHOP_NAME", "NaturaAyur"),
        cors_origins=_env_list("CORS_ORIGINS", "*"),
        allowed_hosts=_env_list("ALLOWED_HOSTS", "localhost,127.0.0.1"),
        admin_roles=[r.lower() for r in _env_list("ADMIN_ROLES", "admin,seller")],
    )
