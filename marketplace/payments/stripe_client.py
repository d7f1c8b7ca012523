"""
Adaptateur Stripe: centralise les appels à la passerelle de paiement.
- StripeGateway porte sa clé API et sa version d'API à chaque appel (pas de stripe.api_key global).
- Toute erreur SDK est convertie en GatewayError (message Stripe conservé).
- Les retours sont réduits à des dicts simples: le reste du code ne manipule pas d'objets Stripe.
- Montants échangés: toujours des entiers en centimes.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import stripe

from marketplace import config
from marketplace.errors import GatewayError, SignatureVerificationFailed

logger = logging.getLogger(__name__)


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Lecture tolérante d'un champ (dict ou StripeObject; id non expandé -> default)."""
    try:
        value = obj[key]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


class StripeGateway:
    def __init__(self, api_key: str, *, api_version: str = config.STRIPE_API_VERSION, currency: str = config.CURRENCY):
        self.api_key = api_key
        self.api_version = api_version
        self.currency = currency

    def _call(self, action: str, fn, *args, **params):
        if not self.api_key:
            raise GatewayError("STRIPE_SECRET_KEY manquant")
        try:
            return fn(*args, api_key=self.api_key, stripe_version=self.api_version, **params)
        except stripe.StripeError as e:
            logger.warning("stripe.%s failed: %s", action, e)
            raise GatewayError(getattr(e, "user_message", None) or str(e)) from e

    # --- Paiements acheteurs (destination charges) ---

    def create_checkout_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        customer_email: Optional[str],
        application_fee_amount: int,
        destination: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """
        Crée une session Checkout hébergée avec destination charge:
        - payment_intent_data.application_fee_amount: commission plateforme (centimes)
        - transfer_data.destination / on_behalf_of: compte connecté du vendeur
        - metadata posée sur la session ET sur le payment intent (réconciliation par l'un ou l'autre événement)
        Retour: {"id": "cs_...", "url": "https://checkout.stripe.com/..."}
        """
        session = self._call(
            "checkout.Session.create",
            stripe.checkout.Session.create,
            mode="payment",
            payment_method_types=["card"],
            line_items=line_items,
            customer_email=customer_email or None,
            payment_intent_data={
                "application_fee_amount": application_fee_amount,
                "transfer_data": {"destination": destination},
                "on_behalf_of": destination,
                "metadata": metadata,
            },
            metadata=metadata,
            success_url=success_url,
            cancel_url=cancel_url,
        )
        return {"id": _field(session, "id"), "url": _field(session, "url")}

    def create_price_checkout_session(
        self,
        *,
        customer: str,
        price: str,
        mode: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        """Session Checkout sur un prix du catalogue plateforme (quantité 1), sans destination charge."""
        session = self._call(
            "checkout.Session.create",
            stripe.checkout.Session.create,
            customer=customer,
            mode=mode,
            payment_method_types=["card"],
            line_items=[{"price": price, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        return {"id": _field(session, "id"), "url": _field(session, "url")}

    def create_payment_intent(
        self,
        *,
        amount: int,
        customer: str,
        application_fee_amount: int,
        destination: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        intent = self._call(
            "PaymentIntent.create",
            stripe.PaymentIntent.create,
            amount=amount,
            currency=self.currency,
            customer=customer,
            application_fee_amount=application_fee_amount,
            transfer_data={"destination": destination},
            on_behalf_of=destination,
            metadata=metadata,
        )
        return {"id": _field(intent, "id"), "client_secret": _field(intent, "client_secret")}

    def create_ephemeral_key(self, customer: str) -> str:
        """Clé éphémère pour le payment sheet natif (stripe_version obligatoire côté SDK)."""
        key = self._call("EphemeralKey.create", stripe.EphemeralKey.create, customer=customer)
        return _field(key, "secret")

    def create_customer(self, *, email: Optional[str], metadata: Dict[str, str], name: Optional[str] = None) -> str:
        params: Dict[str, Any] = {"email": email or None, "metadata": metadata}
        if name:
            params["name"] = name
        customer = self._call("Customer.create", stripe.Customer.create, **params)
        return _field(customer, "id")

    # --- Onboarding vendeur (Connect) ---

    def create_connected_account(self, *, email: Optional[str], business_name: str, metadata: Dict[str, str]) -> str:
        account = self._call(
            "Account.create",
            stripe.Account.create,
            type="standard",
            country="US",
            email=email or None,
            business_profile={"name": business_name, "product_description": "Fresh local produce"},
            metadata=metadata,
        )
        return _field(account, "id")

    def create_account_link(self, *, account: str, return_url: str, refresh_url: str) -> str:
        link = self._call(
            "AccountLink.create",
            stripe.AccountLink.create,
            account=account,
            return_url=return_url,
            refresh_url=refresh_url,
            type="account_onboarding",
        )
        return _field(link, "url")

    def create_setup_session(self, *, customer: str, success_url: str, cancel_url: str) -> Dict[str, Any]:
        session = self._call(
            "checkout.Session.create",
            stripe.checkout.Session.create,
            customer=customer,
            mode="setup",
            payment_method_types=["card"],
            success_url=success_url,
            cancel_url=cancel_url,
        )
        return {"id": _field(session, "id"), "url": _field(session, "url")}

    def create_subscription(self, *, customer: str, price: str) -> Dict[str, Any]:
        """
        Abonnement premium en 'default_incomplete': le client confirme le premier paiement
        avec le client_secret du payment intent de la première facture.
        """
        sub = self._call(
            "Subscription.create",
            stripe.Subscription.create,
            customer=customer,
            items=[{"price": price}],
            payment_behavior="default_incomplete",
            expand=["latest_invoice.payment_intent"],
        )
        intent = _field(_field(sub, "latest_invoice"), "payment_intent")
        return {
            "id": _field(sub, "id"),
            "status": _field(sub, "status"),
            "current_period_start": _field(sub, "current_period_start"),
            "current_period_end": _field(sub, "current_period_end"),
            "client_secret": _field(intent, "client_secret"),
        }

    # --- Facturation des vendeurs (frais d'hébergement) ---

    def create_invoice(self, *, customer: str, description: str) -> str:
        invoice = self._call(
            "Invoice.create",
            stripe.Invoice.create,
            customer=customer,
            collection_method="charge_automatically",
            auto_advance=True,
            description=description,
        )
        return _field(invoice, "id")

    def add_invoice_item(self, *, customer: str, invoice: str, amount: int, description: str) -> str:
        """Ligne de facture en centimes; un montant négatif représente une remise."""
        item = self._call(
            "InvoiceItem.create",
            stripe.InvoiceItem.create,
            customer=customer,
            invoice=invoice,
            currency=self.currency,
            amount=amount,
            description=description,
        )
        return _field(item, "id")

    def finalize_invoice(self, invoice_id: str) -> Dict[str, Any]:
        invoice = self._call("Invoice.finalize_invoice", stripe.Invoice.finalize_invoice, invoice_id)
        return {"id": _field(invoice, "id"), "status": _field(invoice, "status")}


def verify_event(payload: bytes, sig_header: Optional[str], secret: str) -> Dict[str, Any]:
    """
    Valide un événement Stripe signé (webhook) et retourne le JSON brut de l'événement.
    - Vérifie l'en-tête Stripe-Signature (HMAC t=...,v1=...) avec le secret de l'endpoint
    - Rejette les horodatages hors tolérance (DEFAULT_TOLERANCE, 300 s): pas de rejeu
    - Lève SignatureVerificationFailed si l'en-tête manque, est invalide, ou si le body n'est pas du JSON
    """
    if not sig_header:
        raise SignatureVerificationFailed("No signature")
    try:
        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            text, sig_header, secret or "", tolerance=stripe.Webhook.DEFAULT_TOLERANCE
        )
        event = json.loads(text)
    except (stripe.SignatureVerificationError, UnicodeDecodeError, ValueError) as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise SignatureVerificationFailed() from e
    if not isinstance(event, dict):
        raise SignatureVerificationFailed("Invalid webhook payload")
    return event


def get_gateway() -> StripeGateway:
    """Dépendance FastAPI: passerelle configurée depuis l'environnement."""
    return StripeGateway(config.STRIPE_SECRET_KEY)
