"""
Tests for PlanManager.

Tests:
- Plan creation and validation
- Next/blocked/review queries
- Status transitions persisted to PLAN.md
- Error cases
"""

from datetime import date

import pytest

from gsheet_agent.errors import PlanError, ValidationError
from gsheet_agent.plans.manager import PlanManager
from gsheet_agent.plans.models import PhaseInput, TaskStatus, TaskUpdate
from gsheet_agent.store.models import StoredFile

MIXED_PLAN = """# Plan: Mixed

Goal: Exercise ordering

### Phase 1: One
- [x] 1.1 Done already ✅ 2024-01-01
- [>] 1.2 Stuck — no access
- [ ] 1.3 First open task

### Phase 2: Two
- [!] 2.1 Needs a look — confirm totals
- [ ] 2.2 Second open task

## Notes
"""


@pytest.fixture
def plans(store):
	return PlanManager(store, today=lambda: date(2024, 6, 2))


async def _seed_plan(store, content=MIXED_PLAN):
	await store.init()
	existing = await store.read_file("PLAN.md")
	await store.write_file(existing.model_copy(update={"content": content}))


class TestQueries:
	"""Tests for reading the plan."""

	@pytest.mark.asyncio
	async def test_next_task_skips_blocked_and_review(self, store, plans):
		await _seed_plan(store)

		task = await plans.get_next_task()

		assert task.step == "1.3"
		assert task.title == "First open task"

	@pytest.mark.asyncio
	async def test_blocked_and_review_lists(self, store, plans):
		await _seed_plan(store)

		assert [t.step for t in await plans.get_blocked_tasks()] == ["1.2"]
		assert [t.review_note for t in await plans.get_review_tasks()] == ["confirm totals"]

	@pytest.mark.asyncio
	async def test_no_plan(self, plans):
		assert await plans.get_plan() is None
		assert await plans.get_next_task() is None
		assert await plans.get_blocked_tasks() == []

	@pytest.mark.asyncio
	async def test_empty_plan_file_counts_as_no_plan(self, store, plans):
		await _seed_plan(store, content="")
		assert await plans.get_plan() is None

	@pytest.mark.asyncio
	async def test_starter_plan(self, store, plans):
		await store.init()

		plan = await plans.get_plan()

		assert plan.title == "Getting Started"
		assert (await plans.get_next_task()).step == "1.1"


class TestCreatePlan:
	"""Tests for create_plan."""

	@pytest.mark.asyncio
	async def test_replaces_plan_and_keeps_metadata(self, store, plans):
		await store.init()
		before = await store.read_file("PLAN.md")

		plan = await plans.create_plan("Grades", "Fill missing grades", [
			PhaseInput(name="Find gaps", steps=["Read Grades!A:D", "List empty cells"]),
		])

		assert plan.title == "Grades"
		assert [t.step for t in plan.tasks] == ["1.1", "1.2"]
		after = await store.read_file("PLAN.md")
		assert after.content == plan.to_markdown()
		assert after.description == before.description
		assert after.created_ts == before.created_ts
		assert after.depends_on == "AGENTS.md"

	@pytest.mark.asyncio
	async def test_creates_plan_file_when_missing(self, store, service, plans):
		await store.init()
		service.sheets["AGENTSCAPE"].cells = {
			key: value for key, value in service.sheets["AGENTSCAPE"].cells.items() if key[1] != 2
		}

		await plans.create_plan("T", "G", [PhaseInput(name="P", steps=["s"])])

		assert (await store.read_file("PLAN.md")).tags == "agent,plan"

	@pytest.mark.asyncio
	async def test_validation(self, store, plans):
		await store.init()

		with pytest.raises(ValidationError) as exc_info:
			await plans.create_plan(" ", "", [PhaseInput(name="", steps=[])])

		details = exc_info.value.details
		assert "title must be a non-empty string" in details
		assert "goal must be a non-empty string" in details
		assert "phase 1 needs a name" in details
		assert "phase 1 needs non-empty steps" in details

	@pytest.mark.asyncio
	async def test_multiline_step_rejected(self, store, plans):
		with pytest.raises(ValidationError):
			await plans.create_plan("T", "G", [PhaseInput(name="P", steps=["a\n- [ ] 9.9 sneaky"])])


class TestTransitions:
	"""Tests for task status changes."""

	@pytest.mark.asyncio
	async def test_start_then_complete(self, store, plans):
		await _seed_plan(store)

		started = await plans.start_task("1.3")
		assert started.status == TaskStatus.DOING

		done = await plans.complete_task("1.3")
		assert done.status == TaskStatus.DONE
		assert done.completed_date == "2024-06-02"

		content = (await store.read_file("PLAN.md")).content
		assert "- [x] 1.3 First open task ✅ 2024-06-02" in content
		assert (await plans.get_next_task()).step == "2.2"

	@pytest.mark.asyncio
	async def test_block_and_review(self, store, plans):
		await _seed_plan(store)

		blocked = await plans.block_task("2.2", "  waiting on admin  ")
		assert blocked.blocked_reason == "waiting on admin"

		review = await plans.review_task("1.3", "is this right?")
		assert review.review_note == "is this right?"
		assert await plans.get_next_task() is None

	@pytest.mark.asyncio
	async def test_update_task(self, store, plans):
		await _seed_plan(store)

		task = await plans.update_task("1.2", TaskUpdate(status=TaskStatus.TODO))
		assert task.status == TaskStatus.TODO
		assert task.blocked_reason is None
		assert (await plans.get_next_task()).step == "1.2"

		task = await plans.update_task("1.2", TaskUpdate(status=TaskStatus.BLOCKED, reason="again"))
		assert task.blocked_reason == "again"

	@pytest.mark.asyncio
	async def test_other_lines_untouched(self, store, plans):
		await _seed_plan(store, content=MIXED_PLAN.replace("### Phase 2", "stray line\n\n### Phase 2"))

		await plans.complete_task("1.3")

		content = (await store.read_file("PLAN.md")).content
		assert "stray line" in content
		assert "- [>] 1.2 Stuck — no access" in content

	@pytest.mark.asyncio
	async def test_block_requires_reason(self, store, plans):
		await _seed_plan(store)

		with pytest.raises(ValidationError):
			await plans.block_task("1.3", "   ")
		with pytest.raises(ValidationError):
			await plans.update_task("1.3", TaskUpdate(status=TaskStatus.REVIEW))

	@pytest.mark.asyncio
	async def test_multiline_reason_and_note_rejected(self, store, plans):
		await _seed_plan(store)
		before = (await store.read_file("PLAN.md")).content

		with pytest.raises(ValidationError, match="single line"):
			await plans.block_task("1.3", "waiting\n### Phase 9: Injected\n- [ ] 9.1 ghost")
		with pytest.raises(ValidationError, match="single line"):
			await plans.review_task("1.3", "check\r\nthis")

		assert (await store.read_file("PLAN.md")).content == before
		assert [t.step for t in (await plans.get_plan()).tasks] == ["1.1", "1.2", "1.3", "2.1", "2.2"]

	@pytest.mark.asyncio
	async def test_unknown_step(self, store, plans):
		await _seed_plan(store)

		with pytest.raises(PlanError) as exc_info:
			await plans.start_task("3.1")

		assert exc_info.value.available_tasks == ["1.1", "1.2", "1.3", "2.1", "2.2"]

	@pytest.mark.asyncio
	async def test_no_plan(self, plans):
		with pytest.raises(PlanError, match="No plan found"):
			await plans.start_task("1.1")


class TestNotes:
	"""Tests for append_notes."""

	@pytest.mark.asyncio
	async def test_append(self, store, plans):
		await _seed_plan(store)

		plan = await plans.append_notes("Row 14 is a duplicate of row 3")

		assert plan.notes == "Row 14 is a duplicate of row 3"
		assert (await store.read_file("PLAN.md")).content.endswith("Row 14 is a duplicate of row 3")

	@pytest.mark.asyncio
	async def test_metadata_preserved(self, store, plans):
		await _seed_plan(store)
		await store.write_file((await store.read_file("PLAN.md")).model_copy(update={"tags": "custom"}))

		await plans.append_notes("note")

		assert (await store.read_file("PLAN.md")).tags == "custom"
