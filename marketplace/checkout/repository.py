"""
Accès aux données du checkout: correspondance acheteur -> client Stripe (table stripe_customers).
"""
import logging
from typing import Optional

from supabase import Client

from marketplace.infra.supabase_client import first_row

logger = logging.getLogger(__name__)


def get_buyer_customer_id(db: Client, user_id: str) -> Optional[str]:
    row = first_row(
        db.table("stripe_customers").select("customer_id").eq("user_id", user_id).limit(1).execute()
    )
    return (row or {}).get("customer_id") or None


def insert_buyer_customer(db: Client, *, user_id: str, customer_id: str) -> None:
    db.table("stripe_customers").insert({"user_id": user_id, "customer_id": customer_id}).execute()
