"""
Modèles vendeur: compte connecté Stripe, statuts dérivés, abonnement premium.
"""
from typing import Literal, Optional

from pydantic import BaseModel

AccountStatus = Literal["pending", "restricted", "enabled", "rejected"]
SubscriptionStatus = Literal["inactive", "active", "past_due", "canceled", "incomplete"]

# Statuts Stripe -> statuts d'abonnement vendeur
_SUBSCRIPTION_STATUS_MAP = {
    "active": "active",
    "trialing": "active",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "canceled",
    "incomplete_expired": "canceled",
    "incomplete": "incomplete",
}


class ConnectAccount(BaseModel):
    farmer_id: str
    stripe_account_id: str
    account_status: AccountStatus = "pending"
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False

    @property
    def is_payable(self) -> bool:
        return bool(self.charges_enabled and self.stripe_account_id)


def derive_account_status(
    *,
    charges_enabled: bool,
    details_submitted: bool,
    disabled_reason: Optional[str] = None,
) -> AccountStatus:
    """Statut dérivé d'un compte connecté: rejected > enabled > restricted > pending."""
    if (disabled_reason or "").startswith("rejected"):
        return "rejected"
    if charges_enabled:
        return "enabled"
    if details_submitted:
        return "restricted"
    return "pending"


def map_subscription_status(stripe_status: Optional[str]) -> SubscriptionStatus:
    return _SUBSCRIPTION_STATUS_MAP.get(stripe_status or "", "inactive")


class OnboardingRequest(BaseModel):
    return_url: Optional[str] = None
    refresh_url: Optional[str] = None
