"""
Repositories Layer
Data persistence and query operations for DeckSlayer.
"""
from .connection import db_manager, get_database, DatabaseManager
from .ledger import LedgerRepository
from .analyses import AnalysisRepository, ComparisonRepository
from .insights import MarketInsightRepository
from .payments import PaymentEventRepository
from .base import BaseRepository

__all__ = [
    "db_manager",
    "get_database",
    "DatabaseManager",
    "LedgerRepository",
    "AnalysisRepository",
    "ComparisonRepository",
    "MarketInsightRepository",
    "PaymentEventRepository",
    "BaseRepository",
]
