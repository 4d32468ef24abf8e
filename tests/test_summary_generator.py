"""Tests for snapbook.services.summary_generator: idempotent daily summaries."""

import pytest
from sqlalchemy import func, select

from conftest import TODAY, add_snap
from snapbook.core.exceptions import SprintNotFoundError, SummaryNotFoundError
from snapbook.models import Card, DailySummary
from snapbook.models.enums import RAGStatus
from snapbook.services.rag_engine import RAGBreakdown
from snapbook.services.summary_generator import DailySummaryGenerator, majority_sprint_rag

G, A, R = RAGStatus.GREEN, RAGStatus.AMBER, RAGStatus.RED


class TestMajoritySprintRAG:
    @pytest.mark.parametrize(
        "green, amber, red, expected",
        [
            (0, 1, 2, R),   # strict red majority
            (1, 2, 0, A),   # strict amber majority
            (3, 1, 0, G),   # strict green majority
            (1, 1, 1, R),   # no majority, worst present
            (2, 2, 0, A),   # no majority, worst present
            (2, 1, 1, R),   # green not a strict majority
            (0, 0, 0, G),   # empty day
        ],
    )
    def test_majority_then_worst_present(self, green, amber, red, expected):
        assert majority_sprint_rag(RAGBreakdown(green=green, amber=amber, red=red)) is expected


class TestGenerate:
    @pytest.mark.asyncio
    async def test_red_amber_red_day(self, db, seed):
        await add_snap(db, seed.card, seed.author, TODAY, done="Form", final_rag=R)
        await add_snap(db, seed.other_card, seed.other, TODAY, blockers="Waiting on keys", final_rag=A)
        await add_snap(db, seed.card, seed.author, TODAY, to_do="API", final_rag=R)

        summary = await DailySummaryGenerator(db).generate(seed.sprint.id, TODAY)

        assert summary.rag_overview["cardLevel"] == {"green": 0, "amber": 1, "red": 2}
        assert summary.rag_overview["assigneeLevel"] == {"green": 0, "amber": 1, "red": 1}
        assert summary.rag_overview["sprintLevel"] == "red"
        assert summary.done == "[Login page] Form"
        assert summary.to_do == "[Login page] API"
        assert summary.blockers == "[Payment webhook] Waiting on keys"

    @pytest.mark.asyncio
    async def test_breakdown_groups_by_assignee_name(self, db, seed):
        unassigned = Card(title="Dashboard", estimated_time=4, project_id=seed.project.id, sprint_id=seed.sprint.id)
        db.add(unassigned)
        await db.flush()
        await add_snap(db, seed.card, seed.author, TODAY, done="Form", final_rag=G, slot_number=1)
        await add_snap(db, unassigned, seed.other, TODAY, done="Charts", final_rag=A)

        summary = await DailySummaryGenerator(db).generate(seed.sprint.id, TODAY)

        by_assignee = {entry["assignee"]: entry["snaps"] for entry in summary.full_data["byAssignee"]}
        assert set(by_assignee) == {"Mike Johnson", "Unassigned"}
        assert by_assignee["Mike Johnson"][0] == {
            "cardId": seed.card.id,
            "cardTitle": "Login page",
            "done": "Form",
            "toDo": None,
            "blockers": None,
            "rag": "green",
            "slotNumber": 1,
        }
        assert by_assignee["Unassigned"][0]["rag"] == "amber"

    @pytest.mark.asyncio
    async def test_empty_day(self, db, seed):
        summary = await DailySummaryGenerator(db).generate(seed.sprint.id, TODAY)
        assert summary.done == ""
        assert summary.rag_overview["sprintLevel"] == "green"
        assert summary.full_data == {"byAssignee": []}

    @pytest.mark.asyncio
    async def test_second_call_returns_existing_unchanged(self, db, seed):
        generator = DailySummaryGenerator(db)
        await add_snap(db, seed.card, seed.author, TODAY, done="Form", final_rag=G)
        first = await generator.generate(seed.sprint.id, TODAY)

        # Later snaps do not alter an already generated summary
        await add_snap(db, seed.other_card, seed.other, TODAY, done="Webhook", final_rag=R)
        second = await generator.generate(seed.sprint.id, TODAY)

        assert second.id == first.id
        assert second.rag_overview == {
            "cardLevel": {"green": 1, "amber": 0, "red": 0},
            "assigneeLevel": {"green": 1, "amber": 0, "red": 0},
            "sprintLevel": "green",
        }
        count = await db.execute(select(func.count()).select_from(DailySummary))
        assert count.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_missing_sprint(self, db, seed):
        with pytest.raises(SprintNotFoundError):
            await DailySummaryGenerator(db).generate(9999, TODAY)


class TestFetch:
    @pytest.mark.asyncio
    async def test_get_missing_summary(self, db, seed):
        with pytest.raises(SummaryNotFoundError, match="not found for this date"):
            await DailySummaryGenerator(db).get(seed.sprint.id, TODAY)

    @pytest.mark.asyncio
    async def test_list_by_project_newest_first(self, db, seed):
        generator = DailySummaryGenerator(db)
        earlier = seed.sprint.start_date
        await generator.generate(seed.sprint.id, earlier)
        await generator.generate(seed.sprint.id, TODAY)

        summaries = await generator.list_by_project(seed.project.id)
        assert [s.summary_date for s in summaries] == [TODAY, earlier]

        only_today = await generator.list_by_project(seed.project.id, start=TODAY)
        assert [s.summary_date for s in only_today] == [TODAY]
        assert await generator.list_by_project(seed.project.id + 100) == []
