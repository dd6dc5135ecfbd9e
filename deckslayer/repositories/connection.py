"""
MongoDB Connection
Process-wide Motor client and the index set every collection relies on.
"""
from typing import Any, Dict, List, Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
from ..config import settings
from ..utils.observability import logger

IndexSpec = Tuple[Any, Dict[str, Any]]

# collection -> [(keys, create_index options)]
INDEXES: Dict[str, List[IndexSpec]] = {
    "credits_ledger": [
        ([("user_id", 1), ("created_at", -1)], {"name": "idx_ledger_user"}),
        ([("user_id", 1), ("product_id", 1)], {"name": "idx_ledger_user_product"}),
    ],
    "analyses": [
        ([("user_id", 1), ("created_at", -1)], {"name": "idx_analyses_user"}),
    ],
    "comparisons": [
        ([("user_id", 1), ("created_at", -1)], {"name": "idx_comparisons_user"}),
    ],
    "market_insights": [
        ("analysis_id", {"name": "idx_insight_analysis"}),
        ([("sector", 1), ("created_at", -1)], {"name": "idx_insight_sector"}),
    ],
    "payment_events": [
        ("webhook_id", {"name": "idx_payment_webhook_unique", "unique": True}),
    ],
}


class DatabaseManager:
    """
    Owns the single Motor client of the process.

    `connect` and `disconnect` are both safe to repeat. A cached client is
    pinged before reuse and rebuilt if the ping fails (for example after the
    event loop it was bound to has closed, as happens between test runs).
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[AsyncIOMotorClient] = None
    _database: Optional[AsyncIOMotorDatabase] = None

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def connect(self) -> None:
        if self._client is not None:
            try:
                await self._client.admin.command("ping")
                return
            except (RuntimeError, PyMongoError):
                logger.warning("Cached MongoDB client is unusable, reconnecting")
                self._client = None
                self._database = None

        logger.info(
            f"Connecting to MongoDB database '{settings.mongodb_database}'",
            extra={"max_pool_size": settings.mongodb_max_pool_size, "environment": settings.environment}
        )
        self._client = AsyncIOMotorClient(
            settings.mongodb_uri,
            maxPoolSize=settings.mongodb_max_pool_size,
            minPoolSize=settings.mongodb_min_pool_size,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
            tz_aware=True,
        )
        self._database = self._client[settings.mongodb_database]

    async def disconnect(self) -> None:
        if self._client is None:
            return

        self._client.close()
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed")

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._database is None:
            raise RuntimeError("Database not connected. Call await db_manager.connect() first.")
        return self._database

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError("Database client not connected. Call await db_manager.connect() first.")
        return self._client

    async def create_indexes(self) -> None:
        """
        Create every index in INDEXES. Existing indexes are left as they are.

        The unique index on payment_events.webhook_id is what makes webhook
        fulfilment idempotent, so startup fails if it cannot be created.
        """
        db = self.database

        for collection, specs in INDEXES.items():
            for keys, options in specs:
                await db[collection].create_index(keys, **options)

        logger.info(f"MongoDB indexes ensured on {len(INDEXES)} collections")


db_manager = DatabaseManager()


async def get_database() -> AsyncIOMotorDatabase:
    """The connected database, for callers outside the app lifespan."""
    return db_manager.database
