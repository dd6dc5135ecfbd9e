"""
Repository Base
Typed insert and query helpers over one MongoDB collection.
"""
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from bson import ObjectId
from bson.errors import InvalidId
import datetime as dt

from ..models.base import MongoBaseModel
from ..utils.observability import logger

T = TypeVar("T", bound=MongoBaseModel)


def to_object_id(document_id: str) -> Optional[ObjectId]:
    """Parse a client-supplied id. Returns None for malformed ids."""
    try:
        return ObjectId(document_id)
    except (InvalidId, TypeError):
        return None


class BaseRepository(Generic[T]):
    """
    Write-once persistence for one model type.

    Nothing in DeckSlayer edits a stored document wholesale: ledger rows,
    reports and insights are inserted once, and the few field flips (export
    unlock) are targeted updates on the concrete repositories. Datastore
    errors are never caught here.

    Usage:
        class AnalysisRepository(BaseRepository[AnalysisRecord]):
            def __init__(self, database: AsyncIOMotorDatabase):
                super().__init__(database, "analyses", AnalysisRecord)
    """

    def __init__(self, database: AsyncIOMotorDatabase, collection_name: str, model_class: Type[T]):
        self.database = database
        self.collection_name = collection_name
        self.collection: AsyncIOMotorCollection = database[collection_name]
        self.model_class = model_class

    async def create(self, document: T) -> T:
        """
        Stamp and insert `document`, then set its id.

        Returns:
            The same instance, now with `id` populated
        """
        document.created_at = document.updated_at = dt.datetime.now(dt.UTC)

        result = await self.collection.insert_one(
            document.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
        )
        document.id = str(result.inserted_id)

        logger.debug(f"Inserted {self.model_class.__name__} {document.id} into {self.collection_name}")
        return document

    async def find_one(self, filter_dict: Dict[str, Any]) -> Optional[T]:
        doc = await self.collection.find_one(filter_dict)
        return None if doc is None else self._to_model(doc)

    async def find_many(
        self,
        filter_dict: Dict[str, Any],
        limit: int = 100,
        skip: int = 0,
        sort: Optional[List[tuple]] = None
    ) -> List[T]:
        """
        Args:
            filter_dict: MongoDB query filter
            limit: Page size
            skip: Page offset
            sort: (field, direction) pairs
        """
        cursor = self.collection.find(filter_dict)
        if sort:
            cursor = cursor.sort(sort)
        cursor = cursor.skip(skip).limit(limit)

        return [self._to_model(doc) for doc in await cursor.to_list(length=limit)]

    async def count(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(filter_dict or {})

    def _to_model(self, doc: Dict[str, Any]) -> T:
        """Validate a raw document, dropping fields the model does not declare."""
        fields = self.model_class.model_fields
        data = {key: value for key, value in doc.items() if key in fields}
        if "_id" in doc:
            data["_id"] = str(doc["_id"])
        return self.model_class.model_validate(data)
