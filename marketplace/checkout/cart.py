"""
Logique panier pure (pas de Stripe, pas de DB).
"""
from typing import Any, Dict, List, Sequence, Tuple

from marketplace.errors import MultiVendorCheckoutUnsupported, ValidationError
from .models import CartItem


def partition_by_vendor(items: Sequence[CartItem]) -> Dict[str, List[CartItem]]:
    """
    Regroupe le panier par vendeur: {vendor_id: [items...]}.
    - Ordre des vendeurs = ordre de première apparition; ordre relatif des articles conservé.
    """
    partitions: Dict[str, List[CartItem]] = {}
    for item in items:
        partitions.setdefault(item.vendor_id, []).append(item)
    return partitions


def require_single_vendor(partitions: Dict[str, List[CartItem]]) -> Tuple[str, List[CartItem]]:
    """
    Politique multi-vendeurs: rejet explicite.
    Un panier couvrant plusieurs fermes lève MultiVendorCheckoutUnsupported (aucune session créée).
    """
    if not partitions:
        raise ValidationError("No items provided")
    if len(partitions) > 1:
        raise MultiVendorCheckoutUnsupported()
    vendor_id, items = next(iter(partitions.items()))
    return vendor_id, items


def subtotal_cents(items: Sequence[CartItem]) -> int:
    return sum(item.line_total for item in items)


def _fee_line(name: str, amount: int, currency: str) -> Dict[str, Any]:
    return {
        "price_data": {
            "currency": currency,
            "product_data": {"name": name},
            "unit_amount": amount,
        },
        "quantity": 1,
    }


def to_line_items(
    items: Sequence[CartItem],
    currency: str,
    delivery_fee: int = 0,
    service_fee: int = 0,
) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe (price_data) à partir des articles du panier.
    - Un line item par article (nom, description, image optionnelles, unit_amount en centimes).
    - Frais de livraison et de service ajoutés en lignes distinctes lorsqu'ils sont > 0.
    """
    line_items: List[Dict[str, Any]] = []
    for item in items:
        product_data: Dict[str, Any] = {"name": item.name}
        if item.description:
            product_data["description"] = item.description
        if item.image_url:
            product_data["images"] = [item.image_url]
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": product_data,
                "unit_amount": item.unit_price,
            },
            "quantity": item.quantity,
        })
    if delivery_fee > 0:
        line_items.append(_fee_line("Delivery Fee", delivery_fee, currency))
    if service_fee > 0:
        line_items.append(_fee_line("Service Fee", service_fee, currency))
    return line_items
