"""
Résolution de l'utilisateur courant (l'authentification elle-même est faite en amont).
- Le jeton Bearer est conservé tel quel dans user["token"]: la saga le propage
  aux services Produit et Panier.
"""
from fastapi import Request, HTTPException, Depends
from typing import Optional, Dict, Any
import logging

from order_service.config import Settings
from order_service.dependencies import get_settings
from order_service.infra.supabase_client import get_supabase

logger = logging.getLogger(__name__)

def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None

def determine_role(metadata: Dict[str, Any] | None) -> str:
    role = str((metadata or {}).get("role", "")).lower()
    return role or "user"

def get_user_from_token(settings: Settings, token: str) -> Dict[str, Any]:
    """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
    res = get_supabase(settings).auth.get_user(token)
    user = getattr(res, "user", None)
    if not user:
        return {}
    metadata = getattr(user, "user_metadata", None) or {}
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "role": determine_role(metadata),
        "metadata": metadata,
        "token": token,
    }

def get_current_user(request: Request, settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized: User not authenticated")
    try:
        user = get_user_from_token(settings, token)
    except Exception:
        logger.exception("security.get_current_user token resolution failed")
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(
    user: Dict[str, Any] = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    if user.get("role") not in settings.admin_roles:
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
