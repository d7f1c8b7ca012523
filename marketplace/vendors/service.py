"""
Cas d'usage vendeur (onboarding Stripe Connect et facturation plateforme).
- start_connect_onboarding: compte connecté Standard (créé une fois) + lien d'onboarding
- setup_vendor_billing: client plateforme (créé une fois) + session Checkout mode=setup
- subscribe_premium: abonnement premium, enregistré 'incomplete' jusqu'au webhook
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

from marketplace import config
from marketplace.errors import NotFound, ValidationError
from marketplace.payments.stripe_client import StripeGateway
from . import repository

logger = logging.getLogger(__name__)


def require_farmer(db: Client, user: Dict[str, Any]) -> Dict[str, Any]:
    farmer = repository.get_farmer_by_user(db, user["id"])
    if not farmer:
        raise NotFound("Farmer profile not found")
    return farmer


def start_connect_onboarding(
    db: Client,
    gateway: StripeGateway,
    *,
    user: Dict[str, Any],
    origin: str,
    return_url: Optional[str] = None,
    refresh_url: Optional[str] = None,
) -> Dict[str, Any]:
    farmer = require_farmer(db, user)
    account = repository.get_connect_account(db, farmer["id"])
    if account:
        account_id = account.stripe_account_id
    else:
        account_id = gateway.create_connected_account(
            email=user.get("email"),
            business_name=farmer.get("farm_name") or "",
            metadata={"farmer_id": str(farmer["id"]), "user_id": user["id"]},
        )
        repository.insert_connect_account(db, vendor_id=farmer["id"], stripe_account_id=account_id)
        logger.info("connect account created farmer_id=%s account=%s", farmer["id"], account_id)

    url = gateway.create_account_link(
        account=account_id,
        return_url=return_url or f"{origin}/seller/dashboard",
        refresh_url=refresh_url or f"{origin}/seller/enroll",
    )
    return {"url": url, "account_id": account_id}


def setup_vendor_billing(db: Client, gateway: StripeGateway, *, user: Dict[str, Any], origin: str) -> Dict[str, Any]:
    farmer = require_farmer(db, user)
    customer_id = repository.get_platform_customer_id(db, farmer["id"])
    if not customer_id:
        customer_id = gateway.create_customer(
            email=user.get("email"),
            name=farmer.get("farm_name") or None,
            metadata={"farmer_id": str(farmer["id"]), "user_id": user["id"], "type": "vendor_billing"},
        )
        repository.insert_platform_customer(db, vendor_id=farmer["id"], stripe_customer_id=customer_id)
        logger.info("platform customer created farmer_id=%s customer=%s", farmer["id"], customer_id)

    session = gateway.create_setup_session(
        customer=customer_id,
        success_url=f"{origin}/seller/dashboard?setup=success",
        cancel_url=f"{origin}/seller/dashboard?setup=cancel",
    )
    return {"url": session.get("url"), "customer_id": customer_id}


def _iso(ts: Optional[int]) -> Optional[str]:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat() if ts else None


def subscribe_premium(db: Client, gateway: StripeGateway, *, user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée l'abonnement premium du vendeur.
    - Exige un client plateforme (setup_vendor_billing d'abord)
    - Statut local 'incomplete': seul le webhook customer.subscription.* le fait évoluer
    """
    farmer = require_farmer(db, user)
    customer_id = repository.get_platform_customer_id(db, farmer["id"])
    if not customer_id:
        raise ValidationError("Platform customer not found. Please set up billing first.")

    sub = gateway.create_subscription(customer=customer_id, price=config.PREMIUM_PRICE_ID)
    repository.upsert_subscription(db, {
        "farmer_id": farmer["id"],
        "stripe_subscription_id": sub["id"],
        "status": "incomplete",
        "current_period_start": _iso(sub.get("current_period_start")),
        "current_period_end": _iso(sub.get("current_period_end")),
    })
    logger.info("premium subscription created farmer_id=%s subscription=%s", farmer["id"], sub["id"])
    return {"subscription_id": sub["id"], "client_secret": sub.get("client_secret")}
