"""
Cas d'usage 'checkout': orchestre cart, fees, metadata, repository et la passerelle Stripe.
Rôles:
- Créer une session Checkout hébergée pour un panier mono-vendeur (destination charge).
- Créer un payment intent + clé éphémère pour le payment sheet natif.
- Créer une session Checkout sur un prix Stripe (achat unique ou abonnement).
Aucune commande n'est enregistrée ici: seule la confirmation par webhook crée la commande.
"""
import logging
from typing import Any, Dict

from supabase import Client

from marketplace.errors import GatewayError, MultiVendorCheckoutUnsupported, PaymentSetupFailed, VendorNotPayable
from marketplace.fees import split_sale
from marketplace.infra.supabase_client import is_unique_violation
from marketplace.payments.stripe_client import StripeGateway
from marketplace.vendors import repository as vendors_repository
from marketplace.vendors.models import ConnectAccount
from . import cart
from . import metadata as meta
from . import repository
from .models import (
    CheckoutRequest,
    CheckoutSessionResult,
    PaymentIntentRequest,
    PaymentSheetResult,
    PriceCheckoutRequest,
    PriceSessionResult,
)

logger = logging.getLogger(__name__)


def require_payable_account(db: Client, vendor_id: str) -> ConnectAccount:
    """Précondition: le compte connecté du vendeur existe et accepte les paiements."""
    account = vendors_repository.get_connect_account(db, vendor_id)
    if account is None or not account.is_payable:
        raise VendorNotPayable(f"Farmer {vendor_id} is not set up to receive payments")
    return account


def create_checkout_session(
    db: Client,
    gateway: StripeGateway,
    *,
    buyer: Dict[str, Any],
    request: CheckoutRequest,
    success_url: str,
    cancel_url: str,
) -> CheckoutSessionResult:
    """
    Crée la session Checkout Stripe d'un panier mono-vendeur.
    Étapes:
      1) Partitionner le panier (rejet si plusieurs vendeurs)
      2) Vérifier que le vendeur peut encaisser (avant tout appel Stripe)
      3) Sous-total en centimes et répartition commission / part vendeur
      4) line_items + métadonnées (snapshot des articles pour le webhook)
      5) Session Stripe avec application_fee_amount et transfer_data.destination
    Les frais de service restent à la plateforme; les frais de livraison vont au vendeur.
    """
    vendor_id, items = cart.require_single_vendor(cart.partition_by_vendor(request.items))
    account = require_payable_account(db, vendor_id)

    subtotal = cart.subtotal_cents(items)
    split = split_sale(subtotal)
    total = subtotal + request.delivery_fee + request.service_fee
    application_fee = split.platform_fee + request.service_fee
    transfer = total - application_fee

    line_items = cart.to_line_items(items, gateway.currency, request.delivery_fee, request.service_fee)
    metadata = meta.build_order_metadata(
        buyer_id=buyer["id"],
        vendor_id=vendor_id,
        items=items,
        platform_fee_cents=application_fee,
        vendor_amount_cents=transfer,
        subtotal_cents=subtotal,
        delivery_address=request.delivery_address,
        delivery_time=request.delivery_time,
    )
    session = gateway.create_checkout_session(
        line_items=line_items,
        customer_email=buyer.get("email"),
        application_fee_amount=application_fee,
        destination=account.stripe_account_id,
        metadata=metadata,
        success_url=success_url,
        cancel_url=cancel_url,
    )
    logger.info(
        "checkout.session created session_id=%s farmer_id=%s total=%s fee=%s",
        session.get("id"), vendor_id, total, application_fee,
    )
    return CheckoutSessionResult(
        url=session.get("url"),
        session_id=session["id"],
        vendor_id=vendor_id,
        subtotal=subtotal,
        platform_fee=split.platform_fee,
        vendor_amount=split.vendor_amount,
        application_fee_amount=application_fee,
        transfer_amount=transfer,
        total_amount=total,
    )


def resolve_buyer_customer(db: Client, gateway: StripeGateway, buyer: Dict[str, Any]) -> str:
    """
    Retourne le client Stripe de l'acheteur, créé au plus une fois (check-then-create).
    En cas de course, la contrainte unique sur user_id fait gagner la première ligne;
    le client Stripe créé en trop reste orphelin (limitation connue).
    """
    customer_id = repository.get_buyer_customer_id(db, buyer["id"])
    if customer_id:
        return customer_id
    customer_id = gateway.create_customer(email=buyer.get("email"), metadata={"user_id": buyer["id"]})
    try:
        repository.insert_buyer_customer(db, user_id=buyer["id"], customer_id=customer_id)
    except Exception as e:
        if not is_unique_violation(e):
            raise
        logger.info("stripe_customers race for user_id=%s, reusing existing row", buyer["id"])
        return repository.get_buyer_customer_id(db, buyer["id"]) or customer_id
    return customer_id


def create_payment_sheet(
    db: Client,
    gateway: StripeGateway,
    *,
    buyer: Dict[str, Any],
    request: PaymentIntentRequest,
) -> PaymentSheetResult:
    """
    Chemin natif (payment sheet): payment intent avec destination charge + clé éphémère.
    - Mêmes préconditions que le checkout hébergé.
    - Toute erreur Stripe devient PaymentSetupFailed.
    """
    partitions = cart.partition_by_vendor(request.items)
    if set(partitions) != {request.vendor_id}:
        raise MultiVendorCheckoutUnsupported()
    account = require_payable_account(db, request.vendor_id)

    split = split_sale(request.amount)
    metadata = meta.build_order_metadata(
        buyer_id=buyer["id"],
        vendor_id=request.vendor_id,
        items=request.items,
        platform_fee_cents=split.platform_fee,
        vendor_amount_cents=split.vendor_amount,
        subtotal_cents=cart.subtotal_cents(request.items),
        delivery_address=request.delivery_address,
        delivery_time=request.delivery_time,
    )
    try:
        customer_id = resolve_buyer_customer(db, gateway, buyer)
        intent = gateway.create_payment_intent(
            amount=request.amount,
            customer=customer_id,
            application_fee_amount=split.platform_fee,
            destination=account.stripe_account_id,
            metadata=metadata,
        )
        ephemeral_key = gateway.create_ephemeral_key(customer_id)
    except GatewayError as e:
        raise PaymentSetupFailed(e.message) from e

    logger.info("payment_intent created id=%s farmer_id=%s amount=%s", intent["id"], request.vendor_id, request.amount)
    return PaymentSheetResult(
        client_secret=intent.get("client_secret"),
        ephemeral_key=ephemeral_key,
        customer_id=customer_id,
        payment_intent_id=intent["id"],
        platform_fee=split.platform_fee,
        vendor_amount=split.vendor_amount,
    )


def create_price_checkout_session(
    db: Client,
    gateway: StripeGateway,
    *,
    buyer: Dict[str, Any],
    request: PriceCheckoutRequest,
    success_url: str,
    cancel_url: str,
) -> PriceSessionResult:
    """
    Checkout hébergé sur un prix Stripe (mode payment ou subscription) pour le client Stripe de l'acheteur.
    Les URLs fournies par l'appelant priment sur celles par défaut.
    La métadonnée ne porte que user_id: le webhook n'en tire aucune commande marketplace.
    """
    customer_id = resolve_buyer_customer(db, gateway, buyer)
    session = gateway.create_price_checkout_session(
        customer=customer_id,
        price=request.price_id,
        mode=request.mode,
        success_url=request.success_url or success_url,
        cancel_url=request.cancel_url or cancel_url,
        metadata={"user_id": str(buyer["id"])},
    )
    logger.info(
        "checkout.price_session created session_id=%s price=%s mode=%s",
        session.get("id"), request.price_id, request.mode,
    )
    return PriceSessionResult(url=session.get("url"), session_id=session["id"], customer_id=customer_id)
