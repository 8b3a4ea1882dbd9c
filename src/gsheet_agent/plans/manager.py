"""
Plan Manager - task tracking on top of the PLAN.md file.

Features:
- Read and parse the current plan
- Create a plan (replaces the previous one)
- Next / blocked / review task queries
- Status transitions by step id
- Notes as working memory
"""

import logging
from datetime import date
from typing import Callable, Optional, Sequence

from ..errors import PlanError, ValidationError
from ..store.file_store import FileStore
from ..store.models import PLAN_FILE, FileStatus, StoredFile
from .models import PhaseInput, Plan, Task, TaskStatus, TaskUpdate
from .parser import append_note, parse_plan, render_plan, set_task_status

logger = logging.getLogger(__name__)


class PlanManager:
	"""
	Reads and edits the plan document kept in the file store.

	Usage:
		plans = PlanManager(store)
		await plans.create_plan("Clean up roster", "Remove duplicates", [
			PhaseInput(name="Survey", steps=["Read Roster!A:F"]),
		])

		task = await plans.get_next_task()
		await plans.start_task(task.step)
		await plans.complete_task(task.step)
	"""

	def __init__(
		self,
		store: FileStore,
		plan_file: str = PLAN_FILE,
		today: Callable[[], date] = date.today,
	):
		self.store = store
		self.plan_file = plan_file
		self._today = today

	async def _read(self) -> Optional[StoredFile]:
		file = await self.store.read_file(self.plan_file)
		if file is None or not file.content.strip():
			return None
		return file

	async def get_plan(self) -> Optional[Plan]:
		"""The current plan, or None when PLAN.md is missing or empty."""
		file = await self._read()
		return parse_plan(file.content) if file else None

	async def _require_plan(self) -> tuple[StoredFile, Plan]:
		file = await self._read()
		if file is None:
			raise PlanError("No plan found")
		return file, parse_plan(file.content)

	async def _save(self, file: StoredFile, markdown: str) -> None:
		await self.store.write_file(file.model_copy(update={"content": markdown}))

	async def create_plan(self, title: str, goal: str, phases: Sequence[PhaseInput]) -> Plan:
		"""
		Replace the plan with a new one. Every task starts as todo.

		Raises:
			ValidationError: If the title, goal or any phase is empty
		"""
		details = []
		if not title or not title.strip():
			details.append("title must be a non-empty string")
		if not goal or not goal.strip():
			details.append("goal must be a non-empty string")
		if not phases:
			details.append("at least one phase is required")
		for number, phase in enumerate(phases, start=1):
			if not phase.name.strip():
				details.append(f"phase {number} needs a name")
			if not phase.steps or any(not step.strip() for step in phase.steps):
				details.append(f"phase {number} needs non-empty steps")
			if any("\n" in step for step in phase.steps):
				details.append(f"phase {number} steps must be single lines")
		if details:
			raise ValidationError("Invalid plan", details=details)

		markdown = render_plan(title.strip(), goal.strip(), phases)
		existing = await self.store.read_file(self.plan_file)
		file = existing or StoredFile(
			name=self.plan_file,
			description="Active execution plan with phased tasks.",
			tags="agent,plan",
			status=FileStatus.ACTIVE,
		)
		await self._save(file, markdown)
		logger.info(f"Created plan '{title.strip()}' with {len(phases)} phases")
		return parse_plan(markdown)

	# -- queries --

	async def get_next_task(self) -> Optional[Task]:
		"""First todo task in document order; blocked and review tasks are skipped."""
		plan = await self.get_plan()
		return plan.get_next_task() if plan else None

	async def get_review_tasks(self) -> list[Task]:
		plan = await self.get_plan()
		return plan.tasks_with_status(TaskStatus.REVIEW) if plan else []

	async def get_blocked_tasks(self) -> list[Task]:
		plan = await self.get_plan()
		return plan.tasks_with_status(TaskStatus.BLOCKED) if plan else []

	# -- transitions --

	async def _transition(self, step: str, status: TaskStatus, annotation: Optional[str] = None) -> Task:
		file, plan = await self._require_plan()
		updated = set_task_status(plan, step, status, annotation, today=self._today())
		await self._save(file, updated.to_markdown())
		logger.info(f"Task {step} -> {status.value}")
		return updated.find_task(step)

	async def start_task(self, step: str) -> Task:
		return await self._transition(step, TaskStatus.DOING)

	async def complete_task(self, step: str) -> Task:
		"""Mark a task done and stamp today's date."""
		return await self._transition(step, TaskStatus.DONE)

	async def block_task(self, step: str, reason: str) -> Task:
		return await self._transition(step, TaskStatus.BLOCKED, _require_text(reason, "reason"))

	async def review_task(self, step: str, note: str) -> Task:
		return await self._transition(step, TaskStatus.REVIEW, _require_text(note, "note"))

	async def update_task(self, step: str, update: TaskUpdate) -> Task:
		"""
		Apply a status change described by a TaskUpdate.

		Raises:
			PlanError: If there is no plan or no such step
			ValidationError: If blocking without a reason or reviewing without a note
		"""
		if update.status == TaskStatus.BLOCKED:
			return await self.block_task(step, update.reason)
		if update.status == TaskStatus.REVIEW:
			return await self.review_task(step, update.note)
		return await self._transition(step, update.status)

	async def append_notes(self, line: str) -> Plan:
		"""Append a line to the Notes section, creating it when absent."""
		file, plan = await self._require_plan()
		updated = append_note(plan, line)
		await self._save(file, updated.to_markdown())
		return updated


def _require_text(value: Optional[str], field: str) -> str:
	if not value or not value.strip():
		raise ValidationError(
			f"A {field} is required",
			details=[f"{field} must be a non-empty string"],
		)
	if "\n" in value or "\r" in value:
		raise ValidationError(
			f"The {field} must be a single line",
			details=[f"{field} is written onto the task line and cannot contain line breaks"],
		)
	return value.strip()
