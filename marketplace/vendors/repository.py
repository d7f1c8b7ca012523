"""
Accès aux données vendeur (tables farmers, vendor_stripe_accounts,
vendor_platform_customers, vendor_subscriptions).
Le client Supabase est toujours passé par l'appelant.
"""
import logging
from typing import Any, Dict, Optional

from supabase import Client

from marketplace.infra.supabase_client import first_row, rows_of
from .models import ConnectAccount

logger = logging.getLogger(__name__)


def get_farmer_by_user(db: Client, user_id: str) -> Optional[Dict[str, Any]]:
    res = db.table("farmers").select("*").eq("user_id", user_id).limit(1).execute()
    return first_row(res)


def get_farm_name(db: Client, vendor_id: str) -> str:
    row = first_row(db.table("farmers").select("farm_name").eq("id", vendor_id).limit(1).execute())
    return (row or {}).get("farm_name") or ""


# --- Comptes connectés ---

def get_connect_account(db: Client, vendor_id: str) -> Optional[ConnectAccount]:
    row = first_row(
        db.table("vendor_stripe_accounts").select("*").eq("farmer_id", vendor_id).limit(1).execute()
    )
    if not row:
        return None
    return ConnectAccount.model_validate({k: v for k, v in row.items() if v is not None})


def insert_connect_account(db: Client, *, vendor_id: str, stripe_account_id: str) -> None:
    db.table("vendor_stripe_accounts").insert({
        "farmer_id": vendor_id,
        "stripe_account_id": stripe_account_id,
        "account_status": "pending",
    }).execute()


def update_account_status(db: Client, stripe_account_id: str, fields: Dict[str, Any]) -> int:
    """
    Met à jour un compte connecté par son id Stripe (account.updated ne porte pas le farmer_id).
    Retourne le nombre de lignes modifiées.
    """
    res = (
        db.table("vendor_stripe_accounts")
        .update(fields)
        .eq("stripe_account_id", stripe_account_id)
        .execute()
    )
    return len(rows_of(res))


# --- Clients plateforme (facturation vendeur) ---

def get_platform_customer_id(db: Client, vendor_id: str) -> Optional[str]:
    row = first_row(
        db.table("vendor_platform_customers")
        .select("stripe_customer_id")
        .eq("farmer_id", vendor_id)
        .limit(1)
        .execute()
    )
    return (row or {}).get("stripe_customer_id") or None


def insert_platform_customer(db: Client, *, vendor_id: str, stripe_customer_id: str) -> None:
    db.table("vendor_platform_customers").insert({
        "farmer_id": vendor_id,
        "stripe_customer_id": stripe_customer_id,
    }).execute()


# --- Abonnements premium ---

def upsert_subscription(db: Client, row: Dict[str, Any]) -> None:
    db.table("vendor_subscriptions").upsert(row, on_conflict="farmer_id").execute()


def update_subscription(db: Client, stripe_subscription_id: str, fields: Dict[str, Any]) -> int:
    res = (
        db.table("vendor_subscriptions")
        .update(fields)
        .eq("stripe_subscription_id", stripe_subscription_id)
        .execute()
    )
    return len(rows_of(res))
