"""
Snap orchestration.

``SnapService`` is the only entry point the API layer uses. Each public
operation runs as one unit of work on the request's ``AsyncSession``: the
snap write, the card RAG recompute and any lock/history/summary rows commit
together or not at all.
"""
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..core.clock import Clock, SystemClock
from ..core.exceptions import (
    CardNotFoundError,
    ForbiddenError,
    InternalConsistencyError,
    SnapbookError,
    SnapLockedError,
    SnapNotFoundError,
    SprintNotFoundError,
    ValidationFailedError,
)
from ..models.card import Card, CardRAGHistory
from ..models.enums import CardStatus, RAGStatus, SprintStatus
from ..models.lock import DailyLock
from ..models.project import Sprint
from ..models.snap import Snap
from ..models.summary import DailySummary
from ..repositories import CardRepository, SnapRepository, SprintRepository, SummaryRepository
from .lock_manager import LockManager
from .rag_engine import ProjectRAGRollup, RAGEngine, SprintRAGRollup, SystemRAGSuggestion
from .summary_generator import DailySummaryGenerator
from .text_classifier import ParsedSnap, TextClassifier, build_text_classifier
from ..utils.logging import get_logger

logger = get_logger(__name__)


class SnapUpdate(BaseModel):
    """Partial update; only fields explicitly set are applied."""

    raw_input: Optional[str] = None
    done: Optional[str] = None
    to_do: Optional[str] = None
    blockers: Optional[str] = None
    suggested_rag: Optional[RAGStatus] = None
    final_rag: Optional[RAGStatus] = None


class SnapService:
    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Clock] = None,
        classifier: Optional[TextClassifier] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.timezone)
        self.classifier = classifier or build_text_classifier(self.settings)

        self.cards = CardRepository(db)
        self.sprints = SprintRepository(db)
        self.snaps = SnapRepository(db)
        self.summaries = SummaryRepository(db)
        self.lock_manager = LockManager(db)
        self.rag_engine = RAGEngine(db, self.clock, self.settings)
        self.summary_generator = DailySummaryGenerator(db)

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
            await self.db.commit()
        except SnapbookError as e:
            await self.db.rollback()
            logger.info("%s rejected: %s", operation, e.message)
            raise
        except Exception:
            await self.db.rollback()
            logger.error("%s failed", operation, exc_info=True)
            raise

    # Snap lifecycle

    async def create_snap(
        self,
        card_id: int,
        author_id: int,
        raw_input: str,
        done: Optional[str] = None,
        to_do: Optional[str] = None,
        blockers: Optional[str] = None,
        suggested_rag: Optional[RAGStatus] = None,
        final_rag: Optional[RAGStatus] = None,
        slot_number: Optional[int] = None,
    ) -> Snap:
        logger.info("Creating snap for card %d by user %d", card_id, author_id)

        async with self._unit_of_work("create_snap"):
            card = await self._get_card(card_id)
            if not card.estimated_time or card.estimated_time <= 0:
                raise ValidationFailedError(
                    "Card must have Estimated Time (ET) specified to create snap", card_id=card_id
                )

            # Row lock on the sprint orders this insert against a concurrent day lock
            sprint = await self.sprints.get_for_update(card.sprint_id)
            if sprint is None:
                raise SprintNotFoundError(card.sprint_id)
            self._require_active_sprint(sprint)

            today = self.clock.today()
            if slot_number is not None:
                self.lock_manager.validate_slot(sprint, slot_number)
            if await self.lock_manager.is_locked(sprint.id, today, slot_number):
                raise ValidationFailedError(
                    "Cannot create snaps after daily snap lock has been applied",
                    sprint_id=sprint.id,
                    date=today.isoformat(),
                )
            if not sprint.contains(today):
                raise ValidationFailedError(
                    "Snap date must be within sprint date range",
                    sprint_id=sprint.id,
                    date=today.isoformat(),
                )

            if not (done or to_do or blockers or suggested_rag):
                parsed = await self.classifier.classify(raw_input, card.title)
                done, to_do, blockers = parsed.done, parsed.to_do, parsed.blockers
                suggested_rag = parsed.suggested_rag

            snap = await self.snaps.add(Snap(
                card_id=card_id,
                created_by_id=author_id,
                raw_input=raw_input,
                done=done or None,
                to_do=to_do or None,
                blockers=blockers or None,
                suggested_rag=suggested_rag,
                final_rag=final_rag or suggested_rag,
                snap_date=today,
                slot_number=slot_number,
                is_locked=False,
            ))
            snap_id = snap.id

            if card.status == CardStatus.NOT_STARTED:
                await self.cards.set_status(card_id, CardStatus.IN_PROGRESS)
                logger.info("Card %d moved to %s on its first snap", card_id, CardStatus.IN_PROGRESS.value)

            await self.rag_engine.recompute_card_rag(card_id)
            created = await self._reload(snap_id)

        logger.info("Created snap %d for card %d", snap_id, card_id)
        return created

    async def parse_only(self, card_id: int, raw_input: str) -> ParsedSnap:
        card = await self._get_card(card_id)
        return await self.classifier.classify(raw_input, card.title)

    async def update_snap(
        self,
        snap_id: int,
        actor_id: int,
        changes: SnapUpdate,
        regenerate: bool = False,
    ) -> Snap:
        async with self._unit_of_work("update_snap"):
            snap = await self._get_mutable_snap(snap_id, actor_id, "edit")
            self._require_active_sprint(snap.card.sprint, "edit")

            # An earlier final RAG that differs from the suggestion is a human override
            previous_override = snap.final_rag if snap.final_rag != snap.suggested_rag else None

            fields = changes.model_dump(exclude_unset=True, exclude_none=True)
            for name, value in fields.items():
                if name in ("done", "to_do", "blockers"):
                    value = value or None
                setattr(snap, name, value)

            if regenerate:
                parsed = await self.classifier.classify(snap.raw_input, snap.card.title)
                snap.done = parsed.done or None
                snap.to_do = parsed.to_do or None
                snap.blockers = parsed.blockers or None
                snap.suggested_rag = parsed.suggested_rag
                snap.final_rag = fields.get("final_rag") or previous_override or parsed.suggested_rag

            await self.db.flush()
            await self.rag_engine.recompute_card_rag(snap.card_id)
            updated = await self._reload(snap_id)

        logger.info("Updated snap %d (regenerate=%s)", snap_id, regenerate)
        return updated

    async def delete_snap(self, snap_id: int, actor_id: int) -> None:
        async with self._unit_of_work("delete_snap"):
            snap = await self._get_mutable_snap(snap_id, actor_id, "delete")
            sprint = snap.card.sprint
            if sprint.status == SprintStatus.COMPLETED or sprint.is_closed:
                raise ValidationFailedError("Cannot delete snaps from a completed sprint", sprint_id=sprint.id)

            card_id = snap.card_id
            await self.snaps.delete(snap)
            await self.rag_engine.recompute_card_rag(card_id)

        logger.info("Deleted snap %d", snap_id)

    async def get_snap(self, snap_id: int) -> Snap:
        snap = await self.snaps.get(snap_id)
        if snap is None:
            raise SnapNotFoundError(snap_id)
        return snap

    async def get_snaps_for_card(self, card_id: int) -> List[Snap]:
        await self._get_card(card_id)
        return await self.snaps.list_by_card(card_id)

    async def get_snaps_for_sprint_and_date(self, sprint_id: int, day: date) -> List[Snap]:
        if await self.sprints.get(sprint_id) is None:
            raise SprintNotFoundError(sprint_id)
        return await self.snaps.list_by_sprint_and_date(sprint_id, day)

    # RAG overrides

    async def override_rag(
        self,
        snap_id: int,
        rag: RAGStatus,
        actor_id: int,
        notes: Optional[str] = None,
    ) -> Snap:
        async with self._unit_of_work("override_rag"):
            snap = await self.get_snap(snap_id)
            today = self.clock.today()
            if snap.snap_date != today:
                raise ValidationFailedError("Can only override today's snaps", snap_id=snap_id)
            if snap.is_locked or await self.lock_manager.is_locked(snap.card.sprint_id, today, snap.slot_number):
                raise SnapLockedError("Cannot override RAG after daily lock", snap_id=snap_id)

            snap.final_rag = rag
            card_id = snap.card_id
            await self.db.flush()

            await self.rag_engine.recompute_card_rag(card_id)
            await self.rag_engine.record_history(card_id, today, overridden_by_id=actor_id, notes=notes)
            updated = await self._reload(snap_id)

        logger.info("User %d overrode snap %d RAG to %s", actor_id, snap_id, rag.value)
        return updated

    async def suggest_system_rag(self, snap_id: int) -> SystemRAGSuggestion:
        snap = await self.get_snap(snap_id)
        return await self.rag_engine.compute_system_rag(snap.card, snap)

    # Locking

    async def lock_day(self, sprint_id: int, day: date, actor_id: Optional[int]) -> DailyLock:
        async with self._unit_of_work("lock_day"):
            lock = await self.lock_manager.lock_day(sprint_id, day, actor_id)
            await self._after_lock(sprint_id, day, summarize=True)
        return lock

    async def lock_slot(self, sprint_id: int, day: date, slot_number: int, actor_id: Optional[int]) -> DailyLock:
        async with self._unit_of_work("lock_slot"):
            lock = await self.lock_manager.lock_slot(sprint_id, day, slot_number, actor_id)
            await self._after_lock(sprint_id, day, summarize=False, slot_number=slot_number)
        return lock

    async def auto_lock_day(self, sprint_id: int, day: date) -> Optional[DailyLock]:
        async with self._unit_of_work("auto_lock_day"):
            lock = await self.lock_manager.auto_lock_day(sprint_id, day)
            if lock is not None:
                await self._after_lock(sprint_id, day, summarize=True)
        return lock

    async def is_locked(self, sprint_id: int, day: date, slot_number: Optional[int] = None) -> bool:
        return await self.lock_manager.is_locked(sprint_id, day, slot_number)

    async def get_daily_lock(self, sprint_id: int, day: date) -> Optional[DailyLock]:
        return await self.lock_manager.get_daily_lock(sprint_id, day)

    async def get_all_locks_for_day(self, sprint_id: int, day: date) -> List[DailyLock]:
        return await self.lock_manager.get_all_locks_for_day(sprint_id, day)

    async def unlock(self, sprint_id: int, day: date, slot_number: Optional[int] = None) -> None:
        async with self._unit_of_work("unlock"):
            await self.lock_manager.unlock(sprint_id, day, slot_number)

    async def _after_lock(
        self, sprint_id: int, day: date, summarize: bool, slot_number: Optional[int] = None
    ) -> None:
        """History row per card snapped in the locked scope; the whole-day lock also produces the summary."""
        snaps = await self.snaps.list_by_sprint_and_date(sprint_id, day, slot_number)
        for card_id in dict.fromkeys(s.card_id for s in snaps):
            await self.rag_engine.record_history(card_id, day)
        if summarize:
            await self.summary_generator.generate(sprint_id, day)

    # Summaries

    async def generate_summary(self, sprint_id: int, day: date) -> DailySummary:
        try:
            async with self._unit_of_work("generate_summary"):
                summary = await self.summary_generator.generate(sprint_id, day)
        except IntegrityError:
            # A concurrent generation won; theirs is the artifact
            existing = await self.summaries.get(sprint_id, day)
            if existing is None:
                raise
            return existing
        return summary

    async def get_summary(self, sprint_id: int, day: date) -> DailySummary:
        return await self.summary_generator.get(sprint_id, day)

    async def get_summaries_by_project(
        self,
        project_id: int,
        sprint_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DailySummary]:
        return await self.summary_generator.list_by_project(project_id, sprint_id, start, end)

    # Rollups and history

    async def get_sprint_rag(self, sprint_id: int) -> SprintRAGRollup:
        return await self.rag_engine.get_sprint_rag(sprint_id)

    async def get_project_rag(self, project_id: int) -> ProjectRAGRollup:
        return await self.rag_engine.get_project_rag(project_id)

    async def get_card_rag_history(self, card_id: int) -> List[CardRAGHistory]:
        return await self.rag_engine.get_history(card_id)

    async def record_card_rag_history(
        self,
        card_id: int,
        day: Optional[date] = None,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[CardRAGHistory]:
        async with self._unit_of_work("record_card_rag_history"):
            await self._get_card(card_id)
            entry = await self.rag_engine.record_history(
                card_id, day or self.clock.today(), overridden_by_id=actor_id, notes=notes
            )
        return entry

    # Helpers

    async def _get_card(self, card_id: int) -> Card:
        card = await self.cards.get(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return card

    async def _get_mutable_snap(self, snap_id: int, actor_id: int, action: str) -> Snap:
        """Author-only, today-only, and nothing frozen at the snap, slot or day level."""
        snap = await self.get_snap(snap_id)
        # Frozen snaps are rejected the same way for every caller, author or not
        if snap.is_locked:
            raise SnapLockedError(f"Cannot {action} locked snaps", snap_id=snap_id)
        if await self.lock_manager.is_locked(snap.card.sprint_id, snap.snap_date, snap.slot_number):
            raise SnapLockedError(f"Cannot {action} snaps after daily lock", snap_id=snap_id)

        if snap.created_by_id != actor_id:
            raise ForbiddenError(f"You can only {action} your own snaps", snap_id=snap_id)
        if snap.snap_date != self.clock.today():
            raise ValidationFailedError(f"Can only {action} today's snaps", snap_id=snap_id)
        return snap

    @staticmethod
    def _require_active_sprint(sprint: Sprint, action: str = "create") -> None:
        if sprint.status != SprintStatus.ACTIVE:
            raise ValidationFailedError(f"Can only {action} snaps for active sprints", sprint_id=sprint.id)
        if sprint.is_closed:
            raise ValidationFailedError(f"Cannot {action} snaps for closed sprints", sprint_id=sprint.id)

    async def _reload(self, snap_id: int) -> Snap:
        snap = await self.snaps.get(snap_id)
        if snap is None:
            raise InternalConsistencyError("Snap vanished after write", snap_id=snap_id)
        return snap
