"""
Storage-facing repositories, one per entity.

Services depend on these intention-revealing methods instead of building
queries themselves, which keeps lock and rollup logic storage-agnostic.
"""

from .card_repository import CardRepository
from .sprint_repository import SprintRepository
from .snap_repository import SnapRepository
from .lock_repository import LockRepository
from .summary_repository import SummaryRepository
from .rag_history_repository import RAGHistoryRepository

__all__ = [
    "CardRepository",
    "SprintRepository",
    "SnapRepository",
    "LockRepository",
    "SummaryRepository",
    "RAGHistoryRepository",
]
