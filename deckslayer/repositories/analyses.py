"""
Analysis & Comparison Repositories
Stored reports and the export-unlock flag.
"""
from typing import Optional, List
from motor.motor_asyncio import AsyncIOMotorDatabase
import datetime as dt

from .base import BaseRepository, to_object_id
from ..models.analysis import AnalysisRecord, ComparisonRecord
from ..utils.observability import logger


class AnalysisRepository(BaseRepository[AnalysisRecord]):
    """Repository for completed single-deck audits."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "analyses", AnalysisRecord)

    async def get_for_user(self, analysis_id: str, user_id: str) -> Optional[AnalysisRecord]:
        """
        Retrieve an analysis only if it belongs to the user.

        Args:
            analysis_id: String ObjectId of the record
            user_id: Expected owner

        Returns:
            The record, or None when missing, malformed or owned by someone else
        """
        object_id = to_object_id(analysis_id)
        if object_id is None:
            return None

        return await self.find_one({"_id": object_id, "user_id": user_id})

    async def list_for_user(self, user_id: str, limit: int = 50, skip: int = 0) -> List[AnalysisRecord]:
        """History of a user, most recent first."""
        return await self.find_many(
            filter_dict={"user_id": user_id},
            limit=limit,
            skip=skip,
            sort=[("created_at", -1)]
        )

    async def unlock_export(self, analysis_id: str, user_id: Optional[str] = None) -> bool:
        """
        Flip the export-unlock flag of exactly one analysis.

        Args:
            analysis_id: String ObjectId of the record
            user_id: When given, the record must also belong to this user

        Returns:
            True if a record matched
        """
        object_id = to_object_id(analysis_id)
        if object_id is None:
            logger.warning(f"Refusing to unlock malformed analysis id: {analysis_id}")
            return False

        filter_dict = {"_id": object_id}
        if user_id:
            filter_dict["user_id"] = user_id

        result = await self.collection.update_one(
            filter_dict,
            {
                "$set": {
                    "pdf_unlocked": True,
                    "updated_at": dt.datetime.now(dt.UTC)
                }
            }
        )

        if result.matched_count == 0:
            logger.warning(
                f"No analysis matched for export unlock: {analysis_id}",
                extra={"analysis_id": analysis_id, "user_id": user_id}
            )
            return False

        logger.info(
            f"Export unlocked for analysis {analysis_id}",
            extra={"analysis_id": analysis_id}
        )
        return True


class ComparisonRepository(BaseRepository[ComparisonRecord]):
    """Repository for completed two-deck comparisons."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "comparisons", ComparisonRecord)

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[ComparisonRecord]:
        return await self.find_many(
            filter_dict={"user_id": user_id},
            limit=limit,
            sort=[("created_at", -1)]
        )
