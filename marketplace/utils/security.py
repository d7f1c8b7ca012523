import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from supabase import Client

from marketplace import config
from marketplace.errors import Unauthorized
from marketplace.infra.supabase_client import get_supabase

logger = logging.getLogger(__name__)


def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_user(request: Request, db: Client = Depends(get_supabase)) -> Dict[str, Any]:
    """
    Résout l'acheteur/vendeur à partir du jeton Supabase (Authorization: Bearer <jwt>).
    - Retourne {id, email}
    - Lève Unauthorized si le jeton est absent, expiré ou inconnu
    """
    token = bearer_token(request)
    if not token:
        raise Unauthorized()
    try:
        res = db.auth.get_user(token)
    except Exception as e:
        logger.info("auth.get_user failed: %s", e)
        raise Unauthorized() from e
    user = getattr(res, "user", None)
    user_id = getattr(user, "id", None)
    if not user_id:
        raise Unauthorized()
    return {"id": str(user_id), "email": getattr(user, "email", None)}


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_billing_secret(request: Request) -> None:
    """Déclencheur du job de facturation: Bearer BILLING_CRON_SECRET (comparaison à temps constant)."""
    token = bearer_token(request) or ""
    expected = config.BILLING_CRON_SECRET
    if not expected or not secrets.compare_digest(token, expected):
        raise Unauthorized()
