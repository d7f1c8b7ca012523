from typing import Any, Dict

from fastapi import APIRouter, Depends
from supabase import Client

from marketplace.infra.supabase_client import get_service_supabase
from marketplace.utils.security import require_user
from . import repository as orders_repository

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("")
def list_my_orders(
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
) -> Dict[str, Any]:
    """Commandes marketplace de l'acheteur connecté, les plus récentes d'abord."""
    return {"orders": orders_repository.list_for_buyer(db, user["id"])}
