"""
Payment Event Repository
Records processed webhook deliveries so retries from the provider are no-ops.
"""
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from .base import BaseRepository
from ..models.payment import PaymentEvent
from ..utils.observability import logger


class PaymentEventRepository(BaseRepository[PaymentEvent]):
    """
    Webhook deliveries, unique on webhook_id.

    A delivery is claimed by inserting its event before any side effect runs;
    the unique index turns a concurrent or repeated delivery into a no-op.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "payment_events", PaymentEvent)

    async def is_processed(self, webhook_id: str) -> bool:
        return await self.collection.find_one({"webhook_id": webhook_id}, projection={"_id": 1}) is not None

    async def claim(self, event: PaymentEvent) -> bool:
        """
        Insert the event unless its webhook_id was already seen.

        Returns:
            True if this call claimed the delivery
        """
        try:
            await self.create(event)
        except DuplicateKeyError:
            logger.info(f"Webhook {event.webhook_id} already claimed")
            return False
        return True

    async def release(self, webhook_id: str) -> None:
        """Forget a claimed delivery so the provider's retry is processed again."""
        await self.collection.delete_one({"webhook_id": webhook_id})
