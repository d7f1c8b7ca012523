from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from supabase import Client

from marketplace import config
from marketplace.infra.supabase_client import get_service_supabase
from marketplace.payments.stripe_client import StripeGateway, get_gateway
from marketplace.utils.security import require_user
from . import service as vendors_service
from .models import OnboardingRequest

router = APIRouter(prefix="/api/v1/vendors", tags=["Vendors API"])


def _origin(request: Request) -> str:
    return (request.headers.get("origin") or config.APP_BASE_URL).rstrip("/")


@router.post("/connect/account")
def create_connect_account(
    request: Request,
    body: Optional[OnboardingRequest] = None,
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
    gateway: StripeGateway = Depends(get_gateway),
):
    """Compte connecté du vendeur + lien d'onboarding Stripe: {url, account_id}."""
    return vendors_service.start_connect_onboarding(
        db, gateway,
        user=user,
        origin=_origin(request),
        return_url=body.return_url if body else None,
        refresh_url=body.refresh_url if body else None,
    )


@router.post("/billing/setup")
def setup_billing(
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
    gateway: StripeGateway = Depends(get_gateway),
):
    """Session Checkout mode=setup pour enregistrer la carte de facturation: {url, customer_id}."""
    return vendors_service.setup_vendor_billing(db, gateway, user=user, origin=_origin(request))


@router.post("/subscription/premium")
def subscribe_premium(
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
    gateway: StripeGateway = Depends(get_gateway),
):
    return vendors_service.subscribe_premium(db, gateway, user=user)
