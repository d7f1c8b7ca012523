"""
Accès aux données des commandes marketplace (table marketplace_orders).
stripe_payment_intent_id est la clé d'idempotence des webhooks (contrainte UNIQUE).
ledger_credited passe à true une fois la vente créditée au ledger de la saison (season_year, season_name).
"""
from typing import Any, Dict, List, Optional
import logging

from supabase import Client

from marketplace.errors import DuplicateEvent
from marketplace.infra.supabase_client import first_row, is_unique_violation, rows_of

logger = logging.getLogger(__name__)

TABLE = "marketplace_orders"


def find_by_payment_intent(db: Client, payment_intent_id: str) -> Optional[Dict[str, Any]]:
    res = (
        db.table(TABLE)
        .select("id, farmer_id, transfer_amount, stripe_checkout_session_id, ledger_credited, season_year, season_name")
        .eq("stripe_payment_intent_id", payment_intent_id)
        .limit(1)
        .execute()
    )
    return first_row(res)


def insert_order(db: Client, row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insère la commande. Une violation d'unicité (livraison concurrente du même
    événement) devient DuplicateEvent; toute autre erreur remonte.
    """
    try:
        res = db.table(TABLE).insert(row).execute()
    except Exception as e:
        if is_unique_violation(e):
            raise DuplicateEvent(f"Order already recorded for {row.get('stripe_payment_intent_id')}") from e
        raise
    return first_row(res) or row


def list_for_buyer(db: Client, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
    res = (
        db.table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return rows_of(res)


def mark_ledger_credited(db: Client, order_id: Any) -> None:
    db.table(TABLE).update({"ledger_credited": True}).eq("id", order_id).execute()


def set_checkout_session(db: Client, order_id: Any, checkout_session_id: str) -> None:
    db.table(TABLE).update({"stripe_checkout_session_id": checkout_session_id}).eq("id", order_id).execute()
