# module marketplace.checkout.views

"""Endpoints du checkout marketplace.
- /session: crée une session Checkout Stripe hébergée (panier mono-vendeur).
- /payment-sheet: crée un payment intent + clé éphémère pour le payment sheet mobile.
- /price-session: session Checkout sur un prix Stripe (payment | subscription).
Sécurité:
- require_user: jeton Supabase obligatoire.
- optional_rate_limit: 10 requêtes / 60 s par client.
Aucune commande n'est créée ici: le webhook est seul à enregistrer les commandes.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from supabase import Client

from marketplace import config
from marketplace.infra.supabase_client import get_service_supabase
from marketplace.payments.stripe_client import StripeGateway, get_gateway
from marketplace.utils.rate_limit import optional_rate_limit
from marketplace.utils.security import require_user
from . import service as checkout_service
from .models import (
    CheckoutRequest,
    CheckoutSessionResult,
    PaymentIntentRequest,
    PaymentSheetResult,
    PriceCheckoutRequest,
    PriceSessionResult,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])


def _return_urls(request: Request) -> Dict[str, str]:
    """URLs de retour: origine de l'appelant, sinon APP_BASE_URL."""
    origin = (request.headers.get("origin") or config.APP_BASE_URL).rstrip("/")
    return {
        "success_url": f"{origin}/stripe-success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{origin}/stripe-cancel",
    }


@router.post(
    "/session",
    response_model=CheckoutSessionResult,
    dependencies=[Depends(optional_rate_limit(times=10, seconds=60))],
)
def create_checkout_session(
    body: CheckoutRequest,
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
    gateway: StripeGateway = Depends(get_gateway),
):
    """
    Crée la session Checkout du panier.
    - Entrée JSON: {"items": [{"id", "farmer_id", "name", "unit_price", "quantity", ...}], "delivery_address", ...}
    - Réponse: url de la session + montants calculés (centimes)
    - Erreurs: 400 panier multi-fermes ou vendeur non payable, 502 erreur Stripe
    """
    return checkout_service.create_checkout_session(
        db, gateway, buyer=user, request=body, **_return_urls(request)
    )


@router.post(
    "/payment-sheet",
    response_model=PaymentSheetResult,
    dependencies=[Depends(optional_rate_limit(times=10, seconds=60))],
)
def create_payment_sheet(
    body: PaymentIntentRequest,
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
    gateway: StripeGateway = Depends(get_gateway),
):
    return checkout_service.create_payment_sheet(db, gateway, buyer=user, request=body)


@router.post(
    "/price-session",
    response_model=PriceSessionResult,
    dependencies=[Depends(optional_rate_limit(times=10, seconds=60))],
)
def create_price_session(
    body: PriceCheckoutRequest,
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
    gateway: StripeGateway = Depends(get_gateway),
):
    """
    Session Checkout sur un prix Stripe.
    - Entrée JSON: {"price_id": "price_...", "mode": "payment" | "subscription", "success_url"?, "cancel_url"?}
    - Réponse: {"url", "session_id", "customer_id"}
    """
    return checkout_service.create_price_checkout_session(
        db, gateway, buyer=user, request=body, **_return_urls(request)
    )
