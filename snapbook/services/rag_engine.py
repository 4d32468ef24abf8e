"""
RAG computation and rollup.

Two independent card-level paths exist:

* ``recompute_card_rag`` runs after every snap mutation and mirrors the most
  recent snap's final RAG, forcing RED when the card has gone quiet.
* ``compute_system_rag`` derives a suggestion from timeline deviation,
  staleness and blocker severity; it is used to pre-populate overrides.

Assignee, sprint and project levels all use the worst-case rule.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..core.clock import Clock
from ..core.exceptions import CardNotFoundError, NotFoundError, SprintNotFoundError
from ..models.card import Card, CardRAGHistory
from ..models.enums import RAGStatus
from ..models.project import Project
from ..models.snap import Snap
from ..repositories import CardRepository, RAGHistoryRepository, SnapRepository, SprintRepository
from ..utils.logging import get_logger

logger = get_logger(__name__)

SEVERE_BLOCKER_KEYWORDS = (
    "blocked",
    "critical",
    "urgent",
    "severe",
    "major",
    "cannot proceed",
    "showstopper",
    "production down",
    "client escalation",
)

# Snaps inspected when counting consecutive updates without progress
GAP_SCAN_LIMIT = 7


class RAGBreakdown(BaseModel):
    green: int = 0
    amber: int = 0
    red: int = 0

    def add(self, rag: Optional[RAGStatus]) -> None:
        if rag is RAGStatus.GREEN:
            self.green += 1
        elif rag is RAGStatus.AMBER:
            self.amber += 1
        elif rag is RAGStatus.RED:
            self.red += 1


class AssigneeRAG(BaseModel):
    assignee_id: Optional[int]
    assignee_name: str
    rag_status: Optional[RAGStatus]


class SprintRAGRollup(BaseModel):
    sprint_id: int
    sprint_name: str
    rag_status: Optional[RAGStatus]
    breakdown: RAGBreakdown
    assignees: List[AssigneeRAG] = Field(default_factory=list)


class ProjectRAGRollup(BaseModel):
    project_id: int
    rag_status: Optional[RAGStatus]
    breakdown: RAGBreakdown
    sprints: List[SprintRAGRollup] = Field(default_factory=list)


class SystemRAGSuggestion(BaseModel):
    rag_status: RAGStatus
    timeline_deviation: float
    consecutive_days_without_done: int
    has_severe_blocker: bool


def aggregate_worst_case(values: Iterable[Optional[RAGStatus]]) -> Optional[RAGStatus]:
    """RED if any member is RED, else AMBER if any is AMBER, else GREEN; None for no data."""
    worst: Optional[RAGStatus] = None
    for rag in values:
        if rag is None:
            continue
        if worst is None or rag.severity > worst.severity:
            worst = rag
    return worst


def is_severe_blocker(blockers: Optional[str]) -> bool:
    if not blockers:
        return False
    lowered = blockers.lower()
    return any(keyword in lowered for keyword in SEVERE_BLOCKER_KEYWORDS)


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class RAGEngine:
    def __init__(self, db: AsyncSession, clock: Clock, settings: Settings) -> None:
        self.db = db
        self.clock = clock
        self.settings = settings
        self.cards = CardRepository(db)
        self.sprints = SprintRepository(db)
        self.snaps = SnapRepository(db)
        self.history = RAGHistoryRepository(db)

    # Primary path

    async def recompute_card_rag(self, card_id: int) -> Optional[RAGStatus]:
        """Derive the card's RAG from its snap history and persist it.

        Must run in the same transaction as the snap write it follows; the card
        row is locked for the duration so concurrent snaps on one card serialize.
        """
        card = await self.cards.get_for_update(card_id)
        if card is None:
            raise CardNotFoundError(card_id)

        snaps = await self.snaps.list_by_card(card_id)
        if not snaps:
            return card.rag_status

        cutoff = self.clock.today() - timedelta(days=self.settings.rag_stale_after_days)
        recent = [s for s in snaps if s.snap_date >= cutoff]

        if not recent:
            new_rag = RAGStatus.RED
        else:
            new_rag = recent[0].final_rag or RAGStatus.AMBER

        if new_rag != card.rag_status:
            logger.info("Card %d RAG %s -> %s", card_id, card.rag_status, new_rag.value)
        await self.cards.set_rag(card_id, new_rag)
        return new_rag

    # System-suggested path

    async def compute_system_rag(self, card: Card, snap: Snap) -> SystemRAGSuggestion:
        deviation = await self.calculate_timeline_deviation(card)
        gaps = await self.consecutive_days_without_done(card.id)
        severe = is_severe_blocker(snap.blockers)

        rag = self._system_rag(snap, deviation, gaps, severe)
        return SystemRAGSuggestion(
            rag_status=rag,
            timeline_deviation=round(deviation, 2),
            consecutive_days_without_done=gaps,
            has_severe_blocker=severe,
        )

    def _system_rag(self, snap: Snap, deviation: float, gaps: int, severe: bool) -> RAGStatus:
        threshold = self.settings.rag_deviation_red_threshold

        if gaps >= self.settings.rag_consecutive_gap_limit:
            return RAGStatus.RED
        if deviation > threshold:
            return RAGStatus.RED
        if severe:
            return RAGStatus.RED

        if 0 < deviation <= threshold:
            return RAGStatus.AMBER
        if _has_text(snap.blockers):
            return RAGStatus.AMBER
        if not _has_text(snap.done):
            return RAGStatus.AMBER

        return RAGStatus.GREEN

    async def calculate_timeline_deviation(self, card: Card) -> float:
        """Percentage by which elapsed working hours exceed the estimate, floored at 0."""
        if not card.estimated_time or card.estimated_time <= 0:
            return 0.0

        today = self.clock.today()
        start = await self.snaps.first_snap_date(card.id)
        if start is None:
            start = card.created_at.date() if card.created_at else today

        days_elapsed = (today - start).days
        expected_hours = (days_elapsed + 1) * self.settings.rag_hours_per_day
        deviation = (expected_hours - card.estimated_time) / card.estimated_time * 100
        return max(0.0, deviation)

    async def consecutive_days_without_done(self, card_id: int) -> int:
        count = 0
        for snap in await self.snaps.list_by_card(card_id, limit=GAP_SCAN_LIMIT):
            if _has_text(snap.done):
                break
            count += 1
        return count

    # Hierarchical rollup

    async def get_sprint_rag(self, sprint_id: int) -> SprintRAGRollup:
        sprint = await self.sprints.get(sprint_id)
        if sprint is None:
            raise SprintNotFoundError(sprint_id)

        cards = await self.cards.list_by_sprint(sprint_id)
        breakdown = RAGBreakdown()
        by_assignee: Dict[Optional[int], List[Card]] = {}
        for card in cards:
            breakdown.add(card.rag_status)
            by_assignee.setdefault(card.assignee_id, []).append(card)

        assignees = [
            AssigneeRAG(
                assignee_id=assignee_id,
                assignee_name=members[0].assignee.full_name if members[0].assignee else "Unassigned",
                rag_status=aggregate_worst_case(c.rag_status for c in members),
            )
            for assignee_id, members in by_assignee.items()
        ]

        return SprintRAGRollup(
            sprint_id=sprint.id,
            sprint_name=sprint.name,
            rag_status=aggregate_worst_case(a.rag_status for a in assignees),
            breakdown=breakdown,
            assignees=assignees,
        )

    async def get_project_rag(self, project_id: int) -> ProjectRAGRollup:
        project = await self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found", project_id=project_id)

        rollups = [await self.get_sprint_rag(s.id) for s in await self.sprints.list_by_project(project_id)]
        breakdown = RAGBreakdown()
        for rollup in rollups:
            breakdown.add(rollup.rag_status)

        return ProjectRAGRollup(
            project_id=project_id,
            rag_status=aggregate_worst_case(r.rag_status for r in rollups),
            breakdown=breakdown,
            sprints=rollups,
        )

    # History

    async def record_history(
        self,
        card_id: int,
        day: date,
        overridden_by_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[CardRAGHistory]:
        """Upsert the (card, day) history row with the card's current RAG."""
        card = await self.db.get(Card, card_id)
        if card is None or card.rag_status is None:
            return None

        snap = await self.snaps.latest_for_card_on(card_id, day)
        is_overridden = snap is not None and snap.suggested_rag != snap.final_rag

        entry = await self.history.get(card_id, day)
        if entry is None:
            return await self.history.add(CardRAGHistory(
                card_id=card_id,
                date=day,
                rag_status=card.rag_status,
                is_overridden=is_overridden,
                overridden_by_id=overridden_by_id,
                notes=notes,
            ))

        entry.rag_status = card.rag_status
        entry.is_overridden = is_overridden
        if overridden_by_id is not None:
            entry.overridden_by_id = overridden_by_id
        if notes is not None:
            entry.notes = notes
        await self.db.flush()
        return entry

    async def get_history(self, card_id: int) -> List[CardRAGHistory]:
        if await self.db.get(Card, card_id) is None:
            raise CardNotFoundError(card_id)
        return await self.history.list_by_card(card_id)
