"""
Market Insight Repository
Internal trend records and the aggregates behind the admin trends view.
"""
from collections import Counter
from typing import Any, Dict, List
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.market_insight import MarketInsight


class MarketInsightRepository(BaseRepository[MarketInsight]):
    """Repository for internal-only market intelligence."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "market_insights", MarketInsight)

    async def sector_stats(self) -> List[Dict[str, Any]]:
        """
        Per-sector insight count and average fundability score.

        Returns:
            Rows of {"sector", "count", "avg_score"}, most common sector first
        """
        pipeline = [
            {
                "$group": {
                    "_id": "$sector",
                    "count": {"$sum": 1},
                    "avg_score": {"$avg": "$fundability_score"}
                }
            },
            {"$sort": {"count": -1}}
        ]

        results = await self.collection.aggregate(pipeline).to_list(length=None)

        return [
            {
                "sector": row["_id"],
                "count": row["count"],
                "avg_score": round(row["avg_score"] or 0)
            }
            for row in results
        ]

    async def top_narrative_tags(self, limit: int = 15, sample_size: int = 1000) -> List[Dict[str, Any]]:
        """Most frequent narrative tags across recent insights."""
        cursor = self.collection.find(
            {}, projection={"narrative_tags": 1}
        ).sort([("created_at", -1)]).limit(sample_size)

        counts: Counter[str] = Counter()
        async for doc in cursor:
            counts.update(doc.get("narrative_tags") or [])

        return [{"tag": tag, "count": count} for tag, count in counts.most_common(limit)]
