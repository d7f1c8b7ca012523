"""
Réconciliateur des webhooks Stripe: transforme les confirmations de paiement en commandes durables.
Rôles:
- checkout.session.completed / payment_intent.succeeded: créer la commande une seule fois
  (clé: payment intent), puis créditer la part vendeur au ledger de la saison.
- account.updated: statut du compte connecté (recherché par id Stripe).
- customer.subscription.created|updated: statut et période de l'abonnement premium.
- invoice.payment_succeeded, charge.dispute.created: journalisés uniquement.
Résultat de handle_event: created | duplicate | updated | ignored | observed.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from supabase import Client

from marketplace import config
from marketplace.billing import repository as ledgers
from marketplace.billing.seasons import season_for
from marketplace.checkout.metadata import OrderMetadata, parse_order_metadata
from marketplace.errors import DuplicateEvent, ValidationError
from marketplace.fees import cents_to_amount, split_sale
from marketplace.orders import repository as orders_repository
from marketplace.vendors import repository as vendors_repository
from marketplace.vendors.models import derive_account_status, map_subscription_status
from .events import (
    AccountObject,
    CheckoutSessionObject,
    DisputeObject,
    InvoiceObject,
    PaymentIntentObject,
    StripeEvent,
    SubscriptionObject,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _parse_object(event: StripeEvent, model: Type[T]) -> T:
    try:
        return model.model_validate(event.data.object)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {event.type} payload") from e


def _iso(ts: Optional[int]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _credit_ledger(db: Client, order: Dict[str, Any]) -> None:
    """Crédite la part vendeur au ledger de la saison de la commande, puis marque la commande."""
    ledgers.add_sale(
        db,
        vendor_id=order["farmer_id"],
        season_year=order["season_year"],
        season_name=order["season_name"],
        amount=cents_to_amount(order["transfer_amount"]),
    )
    orders_repository.mark_ledger_credited(db, order["id"])


def _resume_existing(db: Client, existing: Dict[str, Any], checkout_session_id: Optional[str]) -> str:
    """
    Livraison d'une commande déjà enregistrée:
    - complète le checkout_session_id si le payment intent est arrivé en premier
    - termine le crédit du ledger si la livraison précédente a échoué après l'insertion
    """
    if checkout_session_id and not existing.get("stripe_checkout_session_id"):
        orders_repository.set_checkout_session(db, existing["id"], checkout_session_id)
    if existing.get("ledger_credited") is False:
        _credit_ledger(db, existing)
        logger.info("ledger credit completed on redelivery order_id=%s", existing["id"])
        return "updated"
    return "duplicate"


def record_order(
    db: Client,
    *,
    meta: OrderMetadata,
    payment_intent_id: str,
    total_amount: int,
    application_fee_amount: int,
    currency: Optional[str],
    checkout_session_id: Optional[str] = None,
    received_at: Optional[datetime] = None,
) -> str:
    """
    Crée la commande puis crédite le ledger, de façon idempotente:
      1) pré-vérification par payment intent (reprise d'un crédit inachevé le cas échéant)
      2) insertion avec ledger_credited=false (la contrainte UNIQUE tranche les livraisons concurrentes)
      3) crédit du ledger de la saison enregistrée sur la commande, puis ledger_credited=true
    Si l'étape 3 échoue, Stripe relivre et l'étape 1 termine le crédit.
    """
    existing = orders_repository.find_by_payment_intent(db, payment_intent_id)
    if existing:
        logger.info("webhook duplicate payment_intent=%s (pre-check)", payment_intent_id)
        return _resume_existing(db, existing, checkout_session_id)

    transfer_amount = total_amount - application_fee_amount
    season_year, season_name = season_for(received_at)
    row = {
        "user_id": meta.user_id,
        "farmer_id": meta.vendor_id,
        "stripe_payment_intent_id": payment_intent_id,
        "stripe_checkout_session_id": checkout_session_id,
        "application_fee_amount": application_fee_amount,
        "transfer_amount": transfer_amount,
        "total_amount": total_amount,
        "currency": (currency or config.CURRENCY).lower(),
        "status": "completed",
        "season_year": season_year,
        "season_name": season_name,
        "ledger_credited": False,
        "metadata": {
            "delivery_address": meta.delivery_address,
            "delivery_time": meta.delivery_time,
            "items": [i.model_dump() for i in meta.items],
        },
    }
    try:
        order = orders_repository.insert_order(db, row)
    except DuplicateEvent:
        logger.info("webhook duplicate payment_intent=%s (unique constraint)", payment_intent_id)
        return "duplicate"

    _credit_ledger(db, {**row, **order})
    logger.info(
        "order created payment_intent=%s farmer_id=%s total=%s transfer=%s",
        payment_intent_id, meta.vendor_id, total_amount, transfer_amount,
    )
    return "created"


def _on_checkout_session_completed(db: Client, event: StripeEvent, received_at: Optional[datetime]) -> str:
    session = _parse_object(event, CheckoutSessionObject)
    if session.payment_status != "paid":
        logger.info("checkout.session %s not paid (status=%s)", session.id, session.payment_status)
        return "ignored"
    meta = parse_order_metadata(session.metadata)
    if meta is None:
        return "ignored"
    if not session.payment_intent:
        logger.warning("checkout.session %s has no payment_intent, cannot key the order", session.id)
        return "ignored"

    total = session.amount_total or 0
    if meta.platform_fee_cents is not None:
        application_fee = meta.platform_fee_cents
    else:
        application_fee = split_sale(total).platform_fee
    if meta.vendor_amount_cents is not None and meta.vendor_amount_cents != total - application_fee:
        logger.warning(
            "checkout.session %s metadata mismatch: vendor_amount_cents=%s computed=%s",
            session.id, meta.vendor_amount_cents, total - application_fee,
        )
    return record_order(
        db,
        meta=meta,
        payment_intent_id=session.payment_intent,
        total_amount=total,
        application_fee_amount=application_fee,
        currency=session.currency,
        checkout_session_id=session.id,
        received_at=received_at,
    )


def _on_payment_intent_succeeded(db: Client, event: StripeEvent, received_at: Optional[datetime]) -> str:
    intent = _parse_object(event, PaymentIntentObject)
    meta = parse_order_metadata(intent.metadata)
    if meta is None:
        return "ignored"
    return record_order(
        db,
        meta=meta,
        payment_intent_id=intent.id,
        total_amount=intent.amount,
        application_fee_amount=intent.application_fee_amount or 0,
        currency=intent.currency,
        received_at=received_at,
    )


def _on_account_updated(db: Client, event: StripeEvent, received_at: Optional[datetime]) -> str:
    account = _parse_object(event, AccountObject)
    status = derive_account_status(
        charges_enabled=account.charges_enabled,
        details_submitted=account.details_submitted,
        disabled_reason=account.disabled_reason,
    )
    count = vendors_repository.update_account_status(db, account.id, {
        "account_status": status,
        "charges_enabled": account.charges_enabled,
        "payouts_enabled": account.payouts_enabled,
        "details_submitted": account.details_submitted,
    })
    if not count:
        logger.info("account.updated for unknown account %s", account.id)
        return "ignored"
    logger.info("account %s status=%s", account.id, status)
    return "updated"


def _on_subscription_changed(db: Client, event: StripeEvent, received_at: Optional[datetime]) -> str:
    sub = _parse_object(event, SubscriptionObject)
    fields: Dict[str, Any] = {
        "status": map_subscription_status(sub.status),
        "cancel_at_period_end": sub.cancel_at_period_end,
    }
    if sub.current_period_start is not None:
        fields["current_period_start"] = _iso(sub.current_period_start)
    if sub.current_period_end is not None:
        fields["current_period_end"] = _iso(sub.current_period_end)
    count = vendors_repository.update_subscription(db, sub.id, fields)
    if not count:
        logger.info("%s for unknown subscription %s", event.type, sub.id)
        return "ignored"
    logger.info("subscription %s status=%s (stripe=%s)", sub.id, fields["status"], sub.status)
    return "updated"


def _on_invoice_payment_succeeded(db: Client, event: StripeEvent, received_at: Optional[datetime]) -> str:
    invoice = _parse_object(event, InvoiceObject)
    if invoice.subscription:
        logger.info("premium subscription payment succeeded customer=%s invoice=%s", invoice.customer, invoice.id)
    else:
        logger.info("hosting fee payment succeeded customer=%s invoice=%s", invoice.customer, invoice.id)
    return "observed"


def _on_dispute_created(db: Client, event: StripeEvent, received_at: Optional[datetime]) -> str:
    dispute = _parse_object(event, DisputeObject)
    logger.warning("dispute %s created for charge %s (reason=%s)", dispute.id, dispute.charge, dispute.reason)
    return "observed"


HANDLERS: Dict[str, Callable[[Client, StripeEvent, Optional[datetime]], str]] = {
    "checkout.session.completed": _on_checkout_session_completed,
    "payment_intent.succeeded": _on_payment_intent_succeeded,
    "account.updated": _on_account_updated,
    "customer.subscription.created": _on_subscription_changed,
    "customer.subscription.updated": _on_subscription_changed,
    "invoice.payment_succeeded": _on_invoice_payment_succeeded,
    "charge.dispute.created": _on_dispute_created,
}


def handle_event(db: Client, event: StripeEvent, received_at: Optional[datetime] = None) -> str:
    """Aiguille un événement vérifié vers son handler; les types inconnus sont acquittés et ignorés."""
    handler = HANDLERS.get(event.type)
    if handler is None:
        logger.info("Unhandled event type %s (%s)", event.type, event.id)
        return "ignored"
    logger.info("Processing webhook event %s (%s)", event.type, event.id)
    return handler(db, event, received_at)
