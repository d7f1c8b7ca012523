"""
Modèles d'entrée/sortie du checkout (validés à la frontière HTTP).
Prix et frais en centimes (int); aucun float accepté.
"""
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, StrictInt, field_validator


class CartItem(BaseModel):
    product_id: str = Field(min_length=1, validation_alias=AliasChoices("product_id", "id"))
    vendor_id: str = Field(min_length=1, validation_alias=AliasChoices("vendor_id", "farmer_id"))
    name: str = Field(min_length=1)
    description: Optional[str] = None
    unit_price: StrictInt = Field(gt=0, description="Prix unitaire en centimes")
    quantity: StrictInt = Field(gt=0)
    image_url: Optional[str] = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class CheckoutRequest(BaseModel):
    items: List[CartItem]
    delivery_address: str = ""
    delivery_time: Optional[str] = None
    delivery_fee: StrictInt = Field(default=0, ge=0)
    service_fee: StrictInt = Field(default=0, ge=0)

    @field_validator("items")
    @classmethod
    def items_not_empty(cls, v: List[CartItem]) -> List[CartItem]:
        if not v:
            raise ValueError("No items provided")
        return v


class PaymentIntentRequest(BaseModel):
    amount: StrictInt = Field(gt=0, description="Montant total en centimes")
    vendor_id: str = Field(min_length=1, validation_alias=AliasChoices("vendor_id", "farmer_id"))
    items: List[CartItem]
    delivery_address: str = ""
    delivery_time: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_not_empty(cls, v: List[CartItem]) -> List[CartItem]:
        if not v:
            raise ValueError("No items provided")
        return v


class PriceCheckoutRequest(BaseModel):
    """Checkout hébergé sur un prix Stripe existant (achat unique ou abonnement)."""
    price_id: str = Field(min_length=1)
    mode: Literal["payment", "subscription"]
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutSessionResult(BaseModel):
    url: Optional[str]
    session_id: str
    vendor_id: str
    subtotal: int
    platform_fee: int
    vendor_amount: int
    application_fee_amount: int
    transfer_amount: int
    total_amount: int


class PaymentSheetResult(BaseModel):
    client_secret: Optional[str]
    ephemeral_key: Optional[str]
    customer_id: str
    payment_intent_id: str
    platform_fee: int
    vendor_amount: int


class PriceSessionResult(BaseModel):
    url: Optional[str]
    session_id: str
    customer_id: str
