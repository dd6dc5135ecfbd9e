from dataclasses import dataclass
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from deckslayer.models.base import MongoBaseModel


@dataclass(frozen=True)
class Product:
    """A purchasable item and what it grants."""
    product_id: str
    credits: int
    unlocks_export: bool = False  # Unlocks the export of the tagged analysis
    grants_export_access: bool = False  # Buyer's future analyses start unlocked


PRODUCTS: dict[str, Product] = {
    "p_single": Product(product_id="p_single", credits=1),
    "p_batch": Product(product_id="p_batch", credits=3, grants_export_access=True),
    "p_pdf_export": Product(product_id="p_pdf_export", credits=0, unlocks_export=True),
}


def export_access_products() -> list[str]:
    """Products whose buyers get every later analysis export-unlocked."""
    return [product.product_id for product in PRODUCTS.values() if product.grants_export_access]


def purchase_reason(product_id: str) -> str:
    """Display text for a purchase ledger entry."""
    return f"Purchase of {product_id}"


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[str] = Field(None, alias="productId")
    analysis_id: Optional[str] = Field(None, alias="roastId")


class PaymentEvent(MongoBaseModel):
    """A processed webhook delivery. The unique webhook_id makes handling idempotent."""
    webhook_id: str
    event_type: str
    user_id: Optional[str] = None
    product_id: Optional[str] = None
    credits_granted: int = 0
    analysis_unlocked: Optional[str] = None
