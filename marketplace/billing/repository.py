"""
Accès aux données des ledgers saisonniers (table seasonal_ledgers).
Unicité (farmer_id, season_year, season_name); montants en unités décimales (colonnes numeric).
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from supabase import Client

from marketplace.fees import format_amount, parse_amount
from marketplace.infra.supabase_client import first_row, rows_of

logger = logging.getLogger(__name__)

TABLE = "seasonal_ledgers"
LEDGER_KEY = "farmer_id,season_year,season_name"


def find_ledger(db: Client, vendor_id: str, season_year: int, season_name: str) -> Optional[Dict[str, Any]]:
    res = (
        db.table(TABLE)
        .select("*")
        .eq("farmer_id", vendor_id)
        .eq("season_year", season_year)
        .eq("season_name", season_name)
        .limit(1)
        .execute()
    )
    return first_row(res)


def add_sale(db: Client, *, vendor_id: str, season_year: int, season_name: str, amount: Decimal) -> Dict[str, Any]:
    """
    Ajoute une vente (part vendeur) aux ventes brutes et nettes du ledger de la saison.
    Lecture puis upsert sur la clé (farmer_id, season_year, season_name): deux ventes
    concurrentes du même vendeur peuvent se perdre l'une l'autre (pas de verrou).
    """
    current = find_ledger(db, vendor_id, season_year, season_name) or {}
    gross = parse_amount(current.get("gross_sales")) + amount
    refunds = parse_amount(current.get("refunds"))
    row = {
        "farmer_id": vendor_id,
        "season_year": season_year,
        "season_name": season_name,
        "gross_sales": format_amount(gross),
        "refunds": format_amount(refunds),
        "net_sales": format_amount(gross - refunds),
    }
    res = db.table(TABLE).upsert(row, on_conflict=LEDGER_KEY).execute()
    logger.info(
        "ledger.add_sale farmer_id=%s season=%s %s amount=%s gross=%s",
        vendor_id, season_name, season_year, amount, row["gross_sales"],
    )
    return first_row(res) or row


def list_for_season(db: Client, season_year: int, season_name: str) -> List[Dict[str, Any]]:
    res = (
        db.table(TABLE)
        .select("*")
        .eq("season_year", season_year)
        .eq("season_name", season_name)
        .execute()
    )
    return rows_of(res)


def record_billing(db: Client, ledger_id: Any, fields: Dict[str, Any]) -> None:
    db.table(TABLE).update(fields).eq("id", ledger_id).execute()
