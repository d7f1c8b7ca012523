"""
Job de facturation saisonnière des frais d'hébergement vendeurs.
Pour chaque ledger de la saison (séquentiellement):
  - déjà facturé (et pas de force_rebill)  -> already_invoiced, aucun appel Stripe
  - ventes nulles ou frais dus nuls        -> no_charge (jamais de facture à 0)
  - pas de client plateforme               -> no_payment_method
  - sinon facture brouillon, ligne +base, ligne -remise, finalisation -> invoiced
Une erreur sur un vendeur est enregistrée (status error) sans interrompre le lot.
"""
import logging
from typing import Any, Dict

from supabase import Client

from marketplace.fees import BASE_HOSTING_FEE, amount_to_cents, format_amount, hosting_discount, hosting_fee_due, parse_amount
from marketplace.payments.stripe_client import StripeGateway
from marketplace.vendors import repository as vendors_repository
from . import repository as ledgers
from .models import BillingOutcome, BillingReport

logger = logging.getLogger(__name__)


def run_seasonal_billing(
    db: Client,
    gateway: StripeGateway,
    *,
    season_year: int,
    season_name: str,
    base_fee: int = BASE_HOSTING_FEE,
    force_rebill: bool = False,
) -> BillingReport:
    report = BillingReport(season=f"{season_name} {season_year}", base_hosting_fee=base_fee)
    rows = ledgers.list_for_season(db, season_year, season_name)
    logger.info("billing.run season=%s %s ledgers=%s force_rebill=%s", season_name, season_year, len(rows), force_rebill)

    for ledger in rows:
        try:
            outcome = bill_ledger(
                db, gateway, ledger,
                season_year=season_year, season_name=season_name,
                base_fee=base_fee, force_rebill=force_rebill,
            )
        except Exception as e:
            logger.exception("billing failed for farmer_id=%s", ledger.get("farmer_id"))
            outcome = _record_error(db, ledger, base_fee, e)
        report.results.append(outcome)

    logger.info(
        "billing.done season=%s invoiced=%s no_charge=%s no_payment_method=%s errors=%s",
        report.season, report.count("invoiced"), report.count("no_charge"),
        report.count("no_payment_method"), report.count("error"),
    )
    return report


def bill_ledger(
    db: Client,
    gateway: StripeGateway,
    ledger: Dict[str, Any],
    *,
    season_year: int,
    season_name: str,
    base_fee: int = BASE_HOSTING_FEE,
    force_rebill: bool = False,
) -> BillingOutcome:
    """Facture un ledger; les erreurs remontent à l'appelant (isolation dans run_seasonal_billing)."""
    vendor_id = str(ledger.get("farmer_id"))
    farm_name = vendors_repository.get_farm_name(db, vendor_id)
    net_sales = parse_amount(ledger.get("net_sales"))
    discount = hosting_discount(net_sales)
    due = hosting_fee_due(net_sales, base_fee)
    outcome = BillingOutcome(
        farmer_id=vendor_id, farm_name=farm_name, net_sales=net_sales, discount=discount, hosting_due=due,
        status="no_charge",
    )

    if ledger.get("billing_status") == "invoiced" and not force_rebill:
        return outcome.model_copy(update={"status": "already_invoiced", "invoice_id": ledger.get("hosting_invoice_id")})

    if net_sales == 0 or due == 0:
        ledgers.record_billing(db, ledger["id"], {
            "discount_amount": discount,
            "hosting_fee_due": 0,
            "billing_status": "no_charge",
            "billing_error": None,
        })
        return outcome.model_copy(update={"hosting_due": 0})

    customer_id = vendors_repository.get_platform_customer_id(db, vendor_id)
    if not customer_id:
        ledgers.record_billing(db, ledger["id"], {
            "discount_amount": discount,
            "hosting_fee_due": due,
            "billing_status": "no_payment_method",
            "billing_error": None,
        })
        return outcome.model_copy(update={"status": "no_payment_method"})

    season_label = f"{season_name} {season_year}"
    description = f"{season_label} hosting fee"
    if farm_name:
        description += f" for {farm_name}"
    invoice_id = gateway.create_invoice(customer=customer_id, description=description)
    gateway.add_invoice_item(
        customer=customer_id,
        invoice=invoice_id,
        amount=amount_to_cents(base_fee),
        description=f"{season_label} hosting fee",
    )
    if discount > 0:
        gateway.add_invoice_item(
            customer=customer_id,
            invoice=invoice_id,
            amount=-amount_to_cents(discount),
            description=f"Sales-based discount (${format_amount(net_sales)} in sales)",
        )
    gateway.finalize_invoice(invoice_id)

    ledgers.record_billing(db, ledger["id"], {
        "discount_amount": discount,
        "hosting_fee_due": due,
        "hosting_invoice_id": invoice_id,
        "billing_status": "invoiced",
        "billing_error": None,
    })
    logger.info("billing.invoiced farmer_id=%s invoice_id=%s due=%s", vendor_id, invoice_id, due)
    return outcome.model_copy(update={"status": "invoiced", "invoice_id": invoice_id})


def _record_error(db: Client, ledger: Dict[str, Any], base_fee: int, error: Exception) -> BillingOutcome:
    message = getattr(error, "message", None) or str(error)
    net_sales = parse_amount(ledger.get("net_sales"))
    discount = hosting_discount(net_sales)
    try:
        ledgers.record_billing(db, ledger.get("id"), {"billing_status": "error", "billing_error": message})
    except Exception:
        logger.exception("could not record billing error for ledger id=%s", ledger.get("id"))
    return BillingOutcome(
        farmer_id=str(ledger.get("farmer_id")),
        net_sales=net_sales,
        discount=discount,
        hosting_due=hosting_fee_due(net_sales, base_fee),
        status="error",
        error=message,
    )
