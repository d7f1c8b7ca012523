"""
Module 'fees': point d'entrée public du calcul de commission et des frais d'hébergement.
"""

from .calculator import (
    BASE_HOSTING_FEE,
    COMMISSION_RATE,
    FeeSplit,
    amount_to_cents,
    cents_to_amount,
    format_amount,
    hosting_discount,
    hosting_fee_due,
    parse_amount,
    split_sale,
)

__all__ = [
    "BASE_HOSTING_FEE",
    "COMMISSION_RATE",
    "FeeSplit",
    "split_sale",
    "hosting_discount",
    "hosting_fee_due",
    "cents_to_amount",
    "amount_to_cents",
    "parse_amount",
    "format_amount",
]
