from typing import Optional
from supabase import create_client, Client
from order_service.config import Settings

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def get_supabase(settings: Settings) -> Client:
    """Client 'anon': utilisé pour résoudre un access token (auth.get_user)."""
    global _supabase
    if _supabase is None:
        _supabase = create_client(settings.supabase_url, settings.supabase_anon_key)
    return _supabase

def get_service_supabase(settings: Settings) -> Client:
    """
    Client Supabase service-role (bypass RLS), partagé par le process.
    Les commandes sont écrites par le service lui-même, y compris depuis le webhook Stripe.
    """
    global _service_supabase
    if not settings.supabase_service_key:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(settings.supabase_url, settings.supabase_service_key)
    return _service_supabase
