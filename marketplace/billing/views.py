import logging

from fastapi import APIRouter, Depends
from supabase import Client

from marketplace.infra.supabase_client import get_service_supabase
from marketplace.payments.stripe_client import StripeGateway, get_gateway
from marketplace.utils.security import require_billing_secret
from . import service as billing_service
from .models import BillingReport, BillingRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/billing", tags=["Billing API"])


@router.post("/seasonal", response_model=BillingReport, dependencies=[Depends(require_billing_secret)])
def run_seasonal_billing(
    body: BillingRequest,
    db: Client = Depends(get_service_supabase),
    gateway: StripeGateway = Depends(get_gateway),
):
    """
    Déclenché par un cron en fin de saison (Authorization: Bearer BILLING_CRON_SECRET).
    - Entrée JSON: {"season_year": 2025, "season_name": "spring", "base_hosting_fee": 50, "force_rebill": false}
    - Réponse: rapport par vendeur (status, montant dû, facture)
    """
    return billing_service.run_seasonal_billing(
        db,
        gateway,
        season_year=body.season_year,
        season_name=body.season_name,
        base_fee=body.base_hosting_fee,
        force_rebill=body.force_rebill,
    )
