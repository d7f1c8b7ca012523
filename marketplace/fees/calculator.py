"""
Calcul des frais (pur, sans Stripe ni DB).
- Commission plateforme / part vendeur sur une vente en centimes.
- Remise et frais d'hébergement saisonniers à partir des ventes nettes (unités décimales).
- Conversion explicite centimes <-> montants décimaux (frontière Stripe / ledger).
Aucun float dans les chemins monétaires: int pour les centimes, Decimal pour les montants.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Union

COMMISSION_RATE = Decimal("0.12")
BASE_HOSTING_FEE = 50
DISCOUNT_STEP = Decimal(10)
DISCOUNT_PER_STEP = 1

_CENTS_PER_UNIT = 100
_ONE = Decimal(1)
_CENT = Decimal("0.01")

Amount = Union[Decimal, int, str]


@dataclass(frozen=True)
class FeeSplit:
    gross: int
    platform_fee: int
    vendor_amount: int


def split_sale(gross_cents: int, rate: Decimal = COMMISSION_RATE) -> FeeSplit:
    """
    Répartit une vente brute (centimes) entre commission plateforme et part vendeur.
    - platform_fee = arrondi au demi supérieur de gross * rate
    - vendor_amount = gross - platform_fee (toujours par soustraction, sans dérive)
    """
    if isinstance(gross_cents, bool) or not isinstance(gross_cents, int):
        raise TypeError("gross_cents must be an int")
    if gross_cents < 0:
        raise ValueError("gross_cents must be >= 0")
    platform_fee = int((Decimal(gross_cents) * rate).quantize(_ONE, rounding=ROUND_HALF_UP))
    return FeeSplit(gross=gross_cents, platform_fee=platform_fee, vendor_amount=gross_cents - platform_fee)


def hosting_discount(net_sales: Amount) -> int:
    """Remise d'hébergement: 1 unité par tranche complète de 10 de ventes nettes (jamais négative)."""
    steps = (to_amount(net_sales) / DISCOUNT_STEP).to_integral_value(rounding=ROUND_FLOOR)
    return max(0, int(steps) * DISCOUNT_PER_STEP)


def hosting_fee_due(net_sales: Amount, base_fee: int = BASE_HOSTING_FEE) -> int:
    """Frais d'hébergement dus: max(0, base_fee - remise)."""
    return max(0, base_fee - hosting_discount(net_sales))


def to_amount(value: Amount) -> Decimal:
    if isinstance(value, float):
        raise TypeError("float amounts are not accepted")
    return Decimal(str(value))


def cents_to_amount(cents: int) -> Decimal:
    """Centimes (Stripe) -> montant décimal (ledger), ex: 1097 -> Decimal('10.97')."""
    return (Decimal(int(cents)) / _CENTS_PER_UNIT).quantize(_CENT)


def amount_to_cents(amount: Amount) -> int:
    """Montant décimal (ledger) -> centimes (Stripe), arrondi au centime demi supérieur."""
    return int((to_amount(amount) * _CENTS_PER_UNIT).quantize(_ONE, rounding=ROUND_HALF_UP))


def parse_amount(value: Any) -> Decimal:
    """
    Normalise une valeur numeric renvoyée par PostgREST (str, int, float JSON ou None).
    Les floats JSON passent par str() pour conserver la représentation décimale exacte.
    """
    if value is None or value == "":
        return Decimal("0.00")
    return Decimal(str(value)).quantize(_CENT)


def format_amount(amount: Decimal) -> str:
    """Sérialisation d'un montant pour une colonne numeric (chaîne, jamais float)."""
    return str(to_amount(amount).quantize(_CENT))
