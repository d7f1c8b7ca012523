"""
Modèles typés des événements Stripe consommés par le réconciliateur.
L'enveloppe est validée à la réception; data.object est validé selon le type d'événement.
Les champs inconnus sont ignorés (compatibilité avec les versions d'API futures).
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class EventData(BaseModel):
    object: Dict[str, Any]


class StripeEvent(BaseModel):
    id: str
    type: str
    created: Optional[int] = None
    account: Optional[str] = None
    livemode: bool = False
    data: EventData


class CheckoutSessionObject(BaseModel):
    id: str
    payment_status: Optional[str] = None
    payment_intent: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = {}


class PaymentIntentObject(BaseModel):
    id: str
    amount: int
    application_fee_amount: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = {}


class AccountRequirements(BaseModel):
    disabled_reason: Optional[str] = None


class AccountObject(BaseModel):
    id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    requirements: Optional[AccountRequirements] = None

    @property
    def disabled_reason(self) -> Optional[str]:
        return self.requirements.disabled_reason if self.requirements else None


class SubscriptionObject(BaseModel):
    id: str
    status: Optional[str] = None
    customer: Optional[str] = None
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False


class InvoiceObject(BaseModel):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    amount_paid: Optional[int] = None


class DisputeObject(BaseModel):
    id: str
    charge: Optional[str] = None
    amount: Optional[int] = None
    reason: Optional[str] = None
