"""
Credit Ledger Repository
Append-only credit transactions and balance queries.
"""
from typing import Iterable, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.ledger import LedgerEntry, LedgerEntryType
from ..utils.observability import logger


class LedgerRepository(BaseRepository[LedgerEntry]):
    """
    Repository for the credits ledger.

    Entries are never updated or deleted; a balance is always recomputed as
    the sum over a user's rows. Datastore errors propagate to the caller so a
    paid operation is denied rather than granted on an unknown balance.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        """Initialize ledger repository with database connection."""
        super().__init__(database, "credits_ledger", LedgerEntry)

    async def get_balance(self, user_id: str) -> int:
        """
        Sum of all ledger amounts for a user.

        Args:
            user_id: Owner of the entries

        Returns:
            The balance, 0 when the user has no entries
        """
        pipeline = [
            {"$match": {"user_id": user_id}},
            {"$group": {"_id": "$user_id", "balance": {"$sum": "$amount"}}},
        ]

        results = await self.collection.aggregate(pipeline).to_list(length=1)

        if not results:
            return 0

        return int(results[0]["balance"])

    async def has_at_least(self, user_id: str, credits: int) -> bool:
        """Check whether the user can afford an operation costing `credits`."""
        return await self.get_balance(user_id) >= credits

    async def append(
        self,
        user_id: str,
        amount: int,
        reason: str,
        entry_type: LedgerEntryType,
        product_id: Optional[str] = None
    ) -> LedgerEntry:
        """
        Append one signed entry.

        Args:
            user_id: Owner of the entry
            amount: Signed credit delta
            reason: Human-readable description
            entry_type: Purchase, consumption or adjustment
            product_id: Catalog product, for purchases

        Returns:
            The persisted entry
        """
        entry = LedgerEntry(
            user_id=user_id,
            amount=amount,
            entry_type=entry_type,
            reason=reason,
            product_id=product_id
        )

        created = await self.create(entry)

        logger.debug(
            f"Ledger entry appended: {amount:+d} for {user_id}",
            extra={"user_id": user_id, "amount": amount, "entry_type": entry_type.value}
        )

        return created

    async def record_consumption(self, user_id: str, credits: int, reason: str) -> LedgerEntry:
        """Deduct `credits` (a positive number) from the user."""
        return await self.append(user_id, -abs(credits), reason, LedgerEntryType.CONSUMPTION)

    async def record_purchase(
        self,
        user_id: str,
        credits: int,
        reason: str,
        product_id: Optional[str] = None
    ) -> LedgerEntry:
        """Grant `credits` to the user for buying `product_id`."""
        return await self.append(user_id, abs(credits), reason, LedgerEntryType.PURCHASE, product_id)

    async def has_purchased(self, user_id: str, product_ids: Iterable[str]) -> bool:
        """Whether the user has ever bought any of the given products."""
        product_ids = list(product_ids)
        if not product_ids:
            return False

        doc = await self.collection.find_one(
            {
                "user_id": user_id,
                "entry_type": LedgerEntryType.PURCHASE.value,
                "product_id": {"$in": product_ids},
            },
            projection={"_id": 1}
        )
        return doc is not None
