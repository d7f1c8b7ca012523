"""
Sérialisation/désérialisation des métadonnées Stripe d'une commande marketplace.
- Écrites à la création de la session / du payment intent.
- Relues par le webhook, qui ne peut pas relire le panier client.
Contraintes Stripe: valeurs str, 500 caractères max par valeur, 50 clés max.
Le snapshot des articles est donc découpé sur plusieurs clés items_0, items_1, ...
"""
import json
import logging
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from marketplace.errors import ValidationError
from .models import CartItem

logger = logging.getLogger(__name__)

METADATA_VALUE_LIMIT = 500
MAX_ITEM_CHUNKS = 40
ITEMS_KEY_PREFIX = "items_"


class ItemSnapshot(BaseModel):
    product_id: str
    name: str
    unit_price: int
    quantity: int


class OrderMetadata(BaseModel):
    user_id: str = Field(min_length=1)
    farmer_id: str = Field(min_length=1)
    platform_fee_cents: Optional[int] = None
    vendor_amount_cents: Optional[int] = None
    subtotal_cents: Optional[int] = None
    delivery_address: str = ""
    delivery_time: str = ""
    items: List[ItemSnapshot] = []

    @property
    def vendor_id(self) -> str:
        return self.farmer_id


def snapshot_items(items: Sequence[CartItem]) -> List[ItemSnapshot]:
    return [
        ItemSnapshot(product_id=i.product_id, name=i.name, unit_price=i.unit_price, quantity=i.quantity)
        for i in items
    ]


def pack_items(items: Sequence[ItemSnapshot]) -> Dict[str, str]:
    """Sérialise le snapshot en JSON compact découpé en morceaux de 500 caractères."""
    payload = json.dumps([s.model_dump() for s in items], separators=(",", ":"))
    chunks = [payload[i:i + METADATA_VALUE_LIMIT] for i in range(0, len(payload), METADATA_VALUE_LIMIT)]
    if len(chunks) > MAX_ITEM_CHUNKS:
        raise ValidationError("Cart is too large to check out in one order")
    return {f"{ITEMS_KEY_PREFIX}{n}": chunk for n, chunk in enumerate(chunks)}


def unpack_items(metadata: Dict[str, str]) -> List[ItemSnapshot]:
    """
    Reconstitue le snapshot à partir de items_0..items_n (ou d'une clé 'items' unique).
    Lève ValidationError si le JSON est illisible.
    """
    parts: List[str] = []
    n = 0
    while f"{ITEMS_KEY_PREFIX}{n}" in metadata:
        parts.append(metadata[f"{ITEMS_KEY_PREFIX}{n}"])
        n += 1
    raw = "".join(parts) or metadata.get("items") or "[]"
    try:
        data = json.loads(raw)
        return [ItemSnapshot.model_validate(d) for d in data]
    except (ValueError, TypeError, PydanticValidationError) as e:
        raise ValidationError(f"Invalid items metadata: {e}") from e


def build_order_metadata(
    *,
    buyer_id: str,
    vendor_id: str,
    items: Sequence[CartItem],
    platform_fee_cents: int,
    vendor_amount_cents: int,
    subtotal_cents: int,
    delivery_address: str = "",
    delivery_time: Optional[str] = None,
) -> Dict[str, str]:
    metadata = {
        "user_id": buyer_id,
        "farmer_id": vendor_id,
        "platform_fee_cents": str(platform_fee_cents),
        "vendor_amount_cents": str(vendor_amount_cents),
        "subtotal_cents": str(subtotal_cents),
        "delivery_address": (delivery_address or "")[:METADATA_VALUE_LIMIT],
        "delivery_time": (delivery_time or "")[:METADATA_VALUE_LIMIT],
    }
    metadata.update(pack_items(snapshot_items(items)))
    return metadata


def parse_order_metadata(metadata: Dict[str, str]) -> Optional[OrderMetadata]:
    """
    Extrait les métadonnées de commande d'un objet Stripe (session ou payment intent).
    - Retourne None si l'objet ne concerne pas une commande marketplace (pas de farmer_id).
    - Lève ValidationError si les champs présents sont incohérents.
    """
    if not (metadata or {}).get("farmer_id"):
        return None
    fields = {k: v for k, v in metadata.items() if not k.startswith(ITEMS_KEY_PREFIX) and k != "items"}
    try:
        parsed = OrderMetadata.model_validate(fields)
    except PydanticValidationError as e:
        logger.warning("Invalid order metadata: %s", e)
        raise ValidationError(f"Invalid order metadata: {e.errors()[0].get('msg')}") from e
    return parsed.model_copy(update={"items": unpack_items(metadata)})
