from enum import StrEnum
from typing import Optional
from pydantic import Field, field_validator
from deckslayer.models.base import MongoBaseModel


class LedgerEntryType(StrEnum):
    PURCHASE = "purchase"
    CONSUMPTION = "consumption"
    ADJUSTMENT = "adjustment"


class LedgerEntry(MongoBaseModel):
    """
    One immutable credit transaction.
    The balance of a user is the sum of the amounts of all their entries.
    """
    user_id: str
    amount: int = Field(..., description="Signed credit delta. Positive for purchases.")
    entry_type: LedgerEntryType
    reason: str = Field(..., max_length=500)
    product_id: Optional[str] = Field(None, description="Catalog product behind a purchase entry.")

    @field_validator("amount")
    @classmethod
    def non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("Ledger entries must move the balance")
        return value
