from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import SprintNotFoundError, SummaryNotFoundError
from ..models.enums import RAGStatus
from ..models.snap import Snap
from ..models.summary import DailySummary
from ..repositories import SnapRepository, SprintRepository, SummaryRepository
from .rag_engine import RAGBreakdown
from ..utils.logging import get_logger

logger = get_logger(__name__)

UNASSIGNED = "Unassigned"


def assignee_name(snap: Snap) -> str:
    card = snap.card
    if card is not None and card.assignee is not None:
        return card.assignee.full_name
    return UNASSIGNED


def worst_snap_rag(snaps: List[Snap]) -> RAGStatus:
    """Worst final RAG among one assignee's snaps; snaps without a RAG count as GREEN."""
    worst = RAGStatus.GREEN
    for snap in snaps:
        if snap.final_rag is RAGStatus.RED:
            return RAGStatus.RED
        if snap.final_rag is RAGStatus.AMBER:
            worst = RAGStatus.AMBER
    return worst


def majority_sprint_rag(card_level: RAGBreakdown) -> RAGStatus:
    """A colour wins outright if it outnumbers the other two combined, else the worst present wins.

    Deliberately not the worst-case rule used by the hierarchical rollup.
    """
    green, amber, red = card_level.green, card_level.amber, card_level.red
    if red > green + amber:
        return RAGStatus.RED
    if amber > green + red:
        return RAGStatus.AMBER
    if green > amber + red:
        return RAGStatus.GREEN
    if red > 0:
        return RAGStatus.RED
    if amber > 0:
        return RAGStatus.AMBER
    return RAGStatus.GREEN


class DailySummaryGenerator:
    """Builds the one immutable summary per (sprint, date)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.summaries = SummaryRepository(db)
        self.sprints = SprintRepository(db)
        self.snaps = SnapRepository(db)

    async def generate(self, sprint_id: int, day: date) -> DailySummary:
        """Return the existing summary untouched, or build and flush a new one.

        The (sprint, date) unique constraint rejects a concurrent duplicate;
        the caller owns the transaction.
        """
        existing = await self.summaries.get(sprint_id, day)
        if existing is not None:
            logger.debug("Summary for sprint %d on %s already exists", sprint_id, day)
            return existing

        if await self.sprints.get(sprint_id) is None:
            raise SprintNotFoundError(sprint_id)

        snaps = await self.snaps.list_by_sprint_and_date(sprint_id, day)
        summary = self.build(sprint_id, day, snaps)

        await self.summaries.add(summary)
        logger.info(
            "Generated summary for sprint %d on %s from %d snaps (sprint level %s)",
            sprint_id, day, len(snaps), summary.rag_overview["sprintLevel"],
        )
        return summary

    def build(self, sprint_id: int, day: date, snaps: List[Snap]) -> DailySummary:
        done: List[str] = []
        to_do: List[str] = []
        blockers: List[str] = []
        by_assignee: Dict[str, List[Snap]] = {}

        for snap in snaps:
            by_assignee.setdefault(assignee_name(snap), []).append(snap)

            title = snap.card.title
            if snap.done:
                done.append(f"[{title}] {snap.done}")
            if snap.to_do:
                to_do.append(f"[{title}] {snap.to_do}")
            if snap.blockers:
                blockers.append(f"[{title}] {snap.blockers}")

        card_level = RAGBreakdown()
        for snap in snaps:
            card_level.add(snap.final_rag)

        assignee_level = RAGBreakdown()
        for assignee_snaps in by_assignee.values():
            assignee_level.add(worst_snap_rag(assignee_snaps))

        return DailySummary(
            sprint_id=sprint_id,
            summary_date=day,
            done="\n".join(done),
            to_do="\n".join(to_do),
            blockers="\n".join(blockers),
            rag_overview={
                "cardLevel": card_level.model_dump(),
                "assigneeLevel": assignee_level.model_dump(),
                "sprintLevel": majority_sprint_rag(card_level).value,
            },
            full_data={"byAssignee": self._breakdown(by_assignee)},
        )

    def _breakdown(self, by_assignee: Dict[str, List[Snap]]) -> List[Dict[str, Any]]:
        return [
            {
                "assignee": name,
                "snaps": [
                    {
                        "cardId": s.card_id,
                        "cardTitle": s.card.title,
                        "done": s.done,
                        "toDo": s.to_do,
                        "blockers": s.blockers,
                        "rag": s.final_rag.value if s.final_rag else None,
                        "slotNumber": s.slot_number,
                    }
                    for s in snaps
                ],
            }
            for name, snaps in by_assignee.items()
        ]

    async def get(self, sprint_id: int, day: date) -> DailySummary:
        summary = await self.summaries.get(sprint_id, day)
        if summary is None:
            raise SummaryNotFoundError(
                "Daily summary not found for this date", sprint_id=sprint_id, date=day.isoformat()
            )
        return summary

    async def list_by_project(
        self,
        project_id: int,
        sprint_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DailySummary]:
        return await self.summaries.list_by_project(project_id, sprint_id, start, end)
